"""Desktop Declutter: relocate triaged files into cloud folders.

Keeps a registry of user-connected cloud destinations (iCloud Drive,
Google Drive, or any synced folder), re-acquires access to them across
launches, and moves accepted files into an organized subtree of the
active destination without ever losing data.
"""

__version__ = "1.0.0"
__app_name__ = "Desktop Declutter"

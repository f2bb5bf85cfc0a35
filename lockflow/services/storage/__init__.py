"""
Object storage for resource files and previews (Supabase Storage).
"""
from .base import Storage, StorageError
from .supabase import SupabaseStorage

__all__ = [
    "Storage",
    "StorageError",
    "SupabaseStorage",
]

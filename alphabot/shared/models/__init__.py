"""Shared data models for persisted bot state."""

from .thread import ThreadMember, ThreadRecord, normalize_admin_ids
from .user import UserRecord

__all__ = [
    "ThreadMember",
    "ThreadRecord",
    "UserRecord",
    "normalize_admin_ids",
]

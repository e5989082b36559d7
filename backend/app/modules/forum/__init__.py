"""
Forum Module - Community discussions.

Features:
- Categories with aggregate counters
- Topics and threaded replies
- Likes and view counts
- Moderation workflow
- Notifications and activity log
- Cursor-paginated listings and statistics
"""

from app.modules.forum.service import ForumService

__all__ = ["ForumService"]

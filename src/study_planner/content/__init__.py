from .models import (
    Attachment,
    AttachmentKind,
    Subject,
    Topic,
    TopicCategory,
    infer_kind,
)
from .progress import (
    Progress,
    category_progress,
    overall_progress,
    subject_progress,
)
from .repository import (
    ContentRepository,
    JsonContentRepository,
    MemoryContentRepository,
)
from .store import ContentStore

__all__ = [
    "Attachment",
    "AttachmentKind",
    "Subject",
    "Topic",
    "TopicCategory",
    "infer_kind",
    "Progress",
    "category_progress",
    "overall_progress",
    "subject_progress",
    "ContentRepository",
    "JsonContentRepository",
    "MemoryContentRepository",
    "ContentStore",
]

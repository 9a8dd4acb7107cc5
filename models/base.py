from sqlalchemy.orm import declarative_base
import enum

Base = declarative_base()


# ============================================================================
# ENUMS
# ============================================================================

class SyncStatus(str, enum.Enum):
    """Final status of a sync run"""
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"

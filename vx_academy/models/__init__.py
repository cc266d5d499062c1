from .user import User, UserRole, ROLE_PERMISSIONS
from .role import Role, RoleMandatoryCourse
from .course import (
    TrainingArea,
    Module,
    Course,
    Unit,
    CourseUnit,
    LearningBlock,
    CourseLevel,
    CourseType,
    BlockType,
)
from .assessment import Assessment, Question, AssessmentAttempt, AssessmentPlacement, QuestionType
from .user_progress import (
    UserProgress,
    BlockCompletion,
    UserUnitProgress,
    UserBlockProgress,
    UserAssessmentProgress,
)
from .badge import Badge, UserBadge, BadgeType
from .certificate import Certificate, CertificateStatus
from .notification import Notification, NotificationType
from .activity_log import UserActivityLog, ActivityType

__all__ = [
    "User",
    "UserRole",
    "ROLE_PERMISSIONS",
    "Role",
    "RoleMandatoryCourse",
    "TrainingArea",
    "Module",
    "Course",
    "Unit",
    "CourseUnit",
    "LearningBlock",
    "CourseLevel",
    "CourseType",
    "BlockType",
    "Assessment",
    "Question",
    "AssessmentAttempt",
    "AssessmentPlacement",
    "QuestionType",
    "UserProgress",
    "BlockCompletion",
    "UserUnitProgress",
    "UserBlockProgress",
    "UserAssessmentProgress",
    "Badge",
    "UserBadge",
    "BadgeType",
    "Certificate",
    "CertificateStatus",
    "Notification",
    "NotificationType",
    "UserActivityLog",
    "ActivityType",
]

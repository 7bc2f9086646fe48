"""
Campus Guardian Users — profile types
"""
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Role(str, Enum):
    STUDENT = "student"
    GUARD = "guard"
    ADMIN = "admin"
    FACULTY = "faculty"
    PARENT = "parent"
    VISITOR = "visitor"


ROLES = [r.value for r in Role]

# Parents are linked by an administrator, never self-registered.
SELF_SIGNUP_ROLES = ["student", "faculty", "visitor", "guard", "admin"]


@dataclass
class UserProfile:
    uid: str
    name: str
    email: str
    role: str
    department: Optional[str] = None
    languagePreference: Optional[str] = None
    childrenUids: List[str] = field(default_factory=list)
    availability: Optional[str] = None
    mobileNumber: Optional[str] = None

    def to_doc(self) -> Dict:
        doc = asdict(self)
        return {k: v for k, v in doc.items() if v is not None}

    @classmethod
    def from_doc(cls, doc: Dict) -> "UserProfile":
        return cls(
            uid=doc.get("uid") or doc.get("id"),
            name=doc.get("name", ""),
            email=doc.get("email", ""),
            role=doc.get("role", "visitor"),
            department=doc.get("department"),
            languagePreference=doc.get("languagePreference"),
            childrenUids=list(doc.get("childrenUids") or []),
            availability=doc.get("availability"),
            mobileNumber=doc.get("mobileNumber"),
        )


def initials(name: str) -> str:
    return "".join(part[0] for part in name.split() if part).upper()

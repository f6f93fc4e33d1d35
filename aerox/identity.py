from dataclasses import dataclass


@dataclass(frozen=True)
class IdentityContext:
    """Read-only view of whoever is signed in."""

    id: str
    email: str
    display_name: str

    @classmethod
    def from_user(cls, user) -> "IdentityContext":
        email = (user.email or "").strip().lower()
        return cls(
            id=str(user.id),
            email=email,
            display_name=user.full_name or email,
        )

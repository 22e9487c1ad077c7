"""Team and application models, plus the acting user."""

from uuid import UUID, uuid4

from sqlmodel import Field, SQLModel


class Team(SQLModel, table=True):
    """A tenant owning instances, devices and applications."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=100)


class Application(SQLModel, table=True):
    """Grouping of instances and devices inside a team; pipelines belong here."""

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(min_length=1, max_length=100)
    team_id: int = Field(foreign_key="team.id", index=True)


class User(SQLModel, table=True):
    """Platform user. Always the actor recorded against core operations."""

    __tablename__ = "user"

    id: UUID = Field(default_factory=uuid4, primary_key=True)
    email: str = Field(unique=True, index=True)
    name: str | None = None


class UserRead(SQLModel):
    """Public user fields embedded in exported snapshots."""

    id: UUID
    email: str
    name: str | None = None

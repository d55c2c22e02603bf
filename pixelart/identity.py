"""Commit author identity."""

import datetime as dt
from dataclasses import dataclass
from typing import Optional

from .errors import MissingIdentity


def build_noreply_email(login: str, uid: Optional[int] = None) -> str:
    if uid:
        return f"{uid}+{login}@users.noreply.github.com"
    return f"{login}@users.noreply.github.com"


@dataclass(frozen=True)
class Identity:
    login: str
    name: Optional[str] = None
    email: Optional[str] = None
    uid: Optional[int] = None

    @classmethod
    def from_user(cls, j: dict) -> "Identity":
        """From a GitHub `/user` payload."""
        return cls(login=j.get("login") or "", name=j.get("name"),
                   email=j.get("email"), uid=j.get("id"))

    def require(self) -> "Identity":
        if not self.login:
            raise MissingIdentity()
        return self

    @property
    def display_name(self) -> str:
        return self.name or self.login

    @property
    def commit_email(self) -> str:
        return self.email or build_noreply_email(self.login, self.uid)

    def author(self, when: dt.datetime) -> dict:
        return {"name": self.display_name, "email": self.commit_email,
                "date": when.isoformat()}

    def __str__(self):
        return f"{self.display_name} <{self.commit_email}>"

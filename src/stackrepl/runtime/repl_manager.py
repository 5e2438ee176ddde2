from __future__ import annotations

from typing import Dict, Optional

from stackrepl.runtime.contracts import ComponentInfo, ReplKind, StanzaType
from stackrepl.runtime.repl_session import ReplSession


class ReplsManager:
    """The REPL sessions of one project, at most one per kind."""

    def __init__(self, project_name: str) -> None:
        self.project_name = project_name
        self._sessions: Dict[ReplKind, ReplSession] = {}

    def register(self, session: ReplSession) -> None:
        if session.kind in self._sessions:
            raise ValueError(
                f"Project '{self.project_name}' already has a {session.kind.value} REPL."
            )
        self._sessions[session.kind] = session

    @property
    def project_repl(self) -> Optional[ReplSession]:
        return self._sessions.get(ReplKind.PROJECT)

    @property
    def library_repl(self) -> Optional[ReplSession]:
        return self._sessions.get(ReplKind.LIBRARY)

    @property
    def global_repl(self) -> Optional[ReplSession]:
        return self._sessions.get(ReplKind.GLOBAL)

    def session_for(self, component: Optional[ComponentInfo]) -> Optional[ReplSession]:
        """Resolve the session that loads files of the given stanza.

        Library stanzas use the library REPL when one is registered; every
        other stanza uses the project REPL.
        """
        if component is None:
            return None
        if component.stanza_type == StanzaType.LIBRARY and self.library_repl is not None:
            return self.library_repl
        return self.project_repl

    def restart_project_non_library_repl(self) -> None:
        session = self.project_repl
        if session is not None:
            session.restart()

    def is_busy(self) -> bool:
        """Whether the project's library REPL is busy loading."""
        session = self.library_repl
        return session is not None and session.busy

    def stop_all(self) -> None:
        for session in self._sessions.values():
            session.stop()

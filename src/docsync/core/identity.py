"""Identity tokens and concurrency stamps kept in a node's side channel"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from docsync.core.models import ArtifactKind, SideChannel


logger = logging.getLogger(__name__)

IGNORE_TOKEN = "IGNORE"
DEFAULT_PREFIX = "Spira-"
STAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%f"


@dataclass(frozen=True)
class IdentityToken:
    kind:          ArtifactKind
    artifact_id:   int
    last_modified: Optional[datetime] = None


def format_stamp(moment: datetime) -> str:
    """yyyy-MM-ddTHH:mm:ss.fff (milliseconds, no zone)."""
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}"


def parse_stamp(text: str) -> Optional[datetime]:
    """Parse a stamp written by format_stamp; unreadable stamps count as empty."""
    text = (text or "").strip()
    if not text:
        return None
    try:
        return datetime.strptime(text, STAMP_FORMAT)
    except ValueError:
        logger.warning("Ignoring unreadable concurrency stamp %r", text)
        return None


def is_ignored(channel: Optional[SideChannel]) -> bool:
    """True when the node carries the reserved exclusion sentinel."""
    return channel is not None and channel.identity.strip() == IGNORE_TOKEN


class IdentityManager:
    """Reads and writes identity tokens of the form <prefix><kind code><id>.

    Stamps are propagated, never compared: on update the stored stamp is
    pushed onto the remote object and the service decides (last writer wins).
    """

    def __init__(self, prefix: str = DEFAULT_PREFIX):
        self.prefix = prefix

    def encode(self, kind: ArtifactKind, artifact_id: int) -> str:
        return f"{self.prefix}{kind.value}{artifact_id}"

    def decode(self, value: str) -> Optional[tuple[ArtifactKind, int]]:
        """(kind, id) from a token string, or None if it is not one of ours."""
        value = (value or "").strip()
        if not value.startswith(self.prefix):
            return None
        body = value[len(self.prefix):]
        code, digits = body[:2], body[2:]
        if not digits.isdigit():
            return None
        try:
            return ArtifactKind(code), int(digits)
        except ValueError:
            return None

    def resolve(self, channel: Optional[SideChannel], kind: ArtifactKind) -> Optional[IdentityToken]:
        """Token for a node whose structural kind is `kind`; mismatches count as absent."""
        if channel is None:
            return None
        decoded = self.decode(channel.identity)
        if decoded is None:
            return None
        found, artifact_id = decoded
        if found is not kind:
            logger.info("Token %s names a %s, node is a %s; treating as new", channel.identity, found.name, kind.name)
            return None
        return IdentityToken(kind, artifact_id, parse_stamp(channel.stamp))

    def stamp(self, channel: SideChannel, token: IdentityToken) -> None:
        """Write both side-channel fields from an authoritative token."""
        channel.identity = self.encode(token.kind, token.artifact_id)
        channel.stamp = format_stamp(token.last_modified) if token.last_modified else ""

    @staticmethod
    def propagate(channel: Optional[SideChannel], remote) -> None:
        """Seed an empty stamp from remote, or overwrite remote.last_update_date with the stored stamp."""
        if channel is None:
            return
        if not channel.stamp.strip():
            if remote.last_update_date is not None:
                channel.stamp = format_stamp(remote.last_update_date)
            return
        stored = parse_stamp(channel.stamp)
        if stored is not None:
            remote.last_update_date = stored

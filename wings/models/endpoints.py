"""Endpoint profiles — the closed set of backend variants.

Every backend is the same ``Endpoint`` class driven by one of these
profiles, selected by its ``EndpointKind`` tag.  A profile is pure data:
ids, link steps, settings validation rules, and user-facing text templates.
Vendor I/O lives behind the ``Deliverer`` protocol, never here.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class EndpointKind(str, Enum):
    """The backends Wings can share to."""

    FACEBOOK = "facebook"
    DROPBOX = "dropbox"
    CLOUD_PRINT = "cloud_print"


# Settings every backend must produce by the end of its link flow.
CORE_LINK_SETTINGS: tuple[str, ...] = ("account_name", "credential")


class NotificationTemplates(BaseModel):
    """``str.format`` templates for share notifications.

    Available fields: ``count``, ``account_name``, ``destination_description``,
    ``reference`` and every persisted link setting.  Unknown fields render
    as empty strings.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    message_single: str
    message_multi: str
    ticker: str
    launch_target: str = ""


class EndpointProfile(BaseModel):
    """Static definition of one backend variant."""

    model_config = ConfigDict(frozen=True)

    kind: EndpointKind
    endpoint_id: int
    display_name: str
    destination_ids: dict[str, int]
    default_destination_id: int
    link_steps: list[str]
    required_settings: list[str] = []
    destination_requirements: dict[int, list[str]] = {}
    description_templates: dict[int, str]
    notifications: NotificationTemplates

    @property
    def owned_destination_ids(self) -> list[int]:
        """Destination ids in a stable order."""
        return sorted(set(self.destination_ids.values()))

    @property
    def first_step(self) -> str:
        return self.link_steps[0]

    def next_step(self, step: str) -> str | None:
        """Return the step after *step*, or None if *step* is the last one."""
        idx = self.link_steps.index(step)
        if idx + 1 < len(self.link_steps):
            return self.link_steps[idx + 1]
        return None

    def missing_settings(self, destination_id: int, settings: dict[str, str]) -> list[str]:
        """Return the names of required settings that are absent or empty."""
        required = [
            *CORE_LINK_SETTINGS,
            *self.required_settings,
            *self.destination_requirements.get(destination_id, []),
        ]
        return [name for name in required if not settings.get(name)]


DEFAULT_ENDPOINT_PROFILES: dict[EndpointKind, EndpointProfile] = {
    EndpointKind.FACEBOOK: EndpointProfile(
        kind=EndpointKind.FACEBOOK,
        endpoint_id=0,
        display_name="Facebook",
        destination_ids={"profile": 0, "page": 1},
        default_destination_id=0,
        link_steps=["login", "open_session", "publish_permissions", "settings"],
        required_settings=["album_name", "album_graph_path"],
        destination_requirements={1: ["page_access_token"]},
        description_templates={
            0: "{account_name}'s {album_name} album",
            1: "{album_name} album of the {account_name} page",
        },
        notifications=NotificationTemplates(
            title="Shared to Facebook",
            message_single="1 photo shared to {album_name}",
            message_multi="{count} photos shared to {album_name}",
            ticker="Facebook share completed",
            launch_target="fb://photo/{reference}",
        ),
    ),
    EndpointKind.DROPBOX: EndpointProfile(
        kind=EndpointKind.DROPBOX,
        endpoint_id=1,
        display_name="Dropbox",
        destination_ids={"app_folder": 0},
        default_destination_id=0,
        link_steps=["authorize", "account"],
        required_settings=["share_url"],
        description_templates={
            0: "{account_name}'s Dropbox folder at {share_url}",
        },
        notifications=NotificationTemplates(
            title="Shared to Dropbox",
            message_single="1 photo shared to {share_url}",
            message_multi="{count} photos shared to {share_url}",
            ticker="Dropbox share completed",
            launch_target="{share_url}",
        ),
    ),
    EndpointKind.CLOUD_PRINT: EndpointProfile(
        kind=EndpointKind.CLOUD_PRINT,
        endpoint_id=2,
        display_name="Cloud Print",
        destination_ids={"print_queue": 0},
        default_destination_id=0,
        link_steps=["settings"],
        required_settings=["printer_identifier", "printer_name"],
        description_templates={
            0: "{printer_name} printer linked to {account_name}",
        },
        notifications=NotificationTemplates(
            title="Sent to printer",
            message_single="1 photo sent to {printer_name}",
            message_multi="{count} photos sent to {printer_name}",
            ticker="Print job queued",
        ),
    ),
}

"""Server configuration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from linemcp import __version__


class ServerOptions(BaseModel):
    """Identity and capability flags advertised during ``initialize``.

    Attributes:
        name: Server name reported in ``serverInfo``.
        version: Server version reported in ``serverInfo``.
        enable_tools: Advertise the tools capability once a tool is registered.
        enable_resources: Advertise the (empty) resources capability.
        enable_prompts: Advertise the (empty) prompts capability.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(default="linemcp", min_length=1)
    version: str = Field(default=__version__, min_length=1)
    enable_tools: bool = True
    enable_resources: bool = False
    enable_prompts: bool = False

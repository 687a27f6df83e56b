"""Nested-set engine settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .sources import nestedset_source


class NestedSetSettings(BaseSettings):
    """Behavioural switches for the tree engine.

    Environment variables use NESTEDSET_ prefix.
    Example: NESTEDSET_VERIFY_AFTER_REBUILD=true
    """

    warn_on_broken: bool = Field(
        default=True,
        description="Log a WARNING with the error counts when a consistency check finds corruption.",
    )
    verify_after_rebuild: bool = Field(
        default=False,
        description="Run the consistency checker after fix_tree/rebuild_tree and log the result.",
    )
    default_move_amount: int = Field(
        default=1,
        ge=1,
        le=10_000,
        description="Sibling positions moved by move_up/move_down when no amount is given.",
    )

    model_config = SettingsConfigDict(
        env_prefix="NESTEDSET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence."""

        def files_source(_=None):
            return nestedset_source()

        return (init_settings, env_settings, dotenv_settings, files_source, file_secret_settings)

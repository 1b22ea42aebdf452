"""Global configuration for metadata forms.

Provides hooks for applications to point the REST collaborators at their
backend and to tune derivation and execution behavior.
"""

from typing import Optional
from dataclasses import dataclass

from pyqt_metaforms.core.slug import SLUG_MAX_LENGTH


@dataclass
class MetaFormConfig:
    """Configuration for metadata form behavior.

    Applications can subclass this to provide custom configuration.

    Attributes:
        api_base_url: Prefix joined with the endpoint paths by the REST collaborators
        actions_endpoint: Path of the metadata action execution endpoint
        households_endpoint: Path of the household directory endpoint
        request_timeout: Seconds before a REST call is abandoned
        slug_max_length: Maximum length of derived slug codes
        lookup_create_handler: Handler used when a quick-create descriptor has no action
        family_quick_create_handler: Handler used to create a family by name
        directory_failure_message: Warning shown once when the household directory fails
        run_actions_in_background: Run collaborator calls on a QThread (False runs inline)
        layout_preset: Name of the FormLayoutConfig preset used by widgets
    """

    api_base_url: str = ""
    actions_endpoint: str = "/api/metadata/actions"
    households_endpoint: str = "/households"
    request_timeout: float = 30.0
    slug_max_length: int = SLUG_MAX_LENGTH
    lookup_create_handler: str = "admin-community.members.manage.lookup.create"
    family_quick_create_handler: str = "admin-community.families.quickCreate"
    directory_failure_message: str = (
        "We couldn't load existing households. "
        "You can still enter a new household manually."
    )
    run_actions_in_background: bool = True
    layout_preset: str = "compact"


# Global config instance (set by application)
_form_config: Optional[MetaFormConfig] = None


def set_form_config(config: MetaFormConfig) -> None:
    """Set the global metadata form configuration.

    Args:
        config: MetaFormConfig instance
    """
    global _form_config
    _form_config = config


def get_form_config() -> MetaFormConfig:
    """Get the current metadata form configuration.

    Returns:
        Current MetaFormConfig or default if not set
    """
    if _form_config is None:
        return MetaFormConfig()
    return _form_config

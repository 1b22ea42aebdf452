"""Household directory protocol.

Lets applications supply the household directory read without
pyqt-metaforms depending on a specific endpoint.
"""

from typing import Any, Dict, List, Optional, Protocol


class HouseholdDirectory(Protocol):
    """Protocol for household directory sources.

    Rows use the directory's snake_case shape: ``id``, ``name``,
    ``envelope_number``, ``member_names``, ``address_street``,
    ``address_city``, ``address_state``, ``address_postal_code``.
    """

    def fetch_households(self) -> List[Dict[str, Any]]:
        """Fetch every household row.

        Raises:
            DirectoryFetchError: When the directory cannot be read
        """
        ...


# Global directory instance (set by application)
_household_directory: Optional[HouseholdDirectory] = None


def register_household_directory(directory: HouseholdDirectory) -> None:
    """Register a household directory implementation."""
    global _household_directory
    _household_directory = directory


def get_household_directory() -> Optional[HouseholdDirectory]:
    """Get the registered household directory, or None."""
    return _household_directory

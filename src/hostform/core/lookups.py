"""Read-only lookups for regions and images.

A failed lookup is always an error: a configuration naming a region or
image that does not exist cannot be reconciled.
"""

from __future__ import annotations

from hostform.core.exceptions import ResourceNotFoundError
from hostform.core.hosting import Hosting
from hostform.models.catalog import Image, Region
from hostform.utils.logging import get_logger

logger = get_logger("lookups")


def region_by_code(hosting: Hosting, code: str) -> Region:
    """Find a region by its code (e.g. ``FR-SD6``).

    Raises:
        ResourceNotFoundError: If no region has this code.
    """
    region = hosting.region_by_code(code)
    logger.debug(f"Region {code} resolved to {region.id}")
    return region


def image_by_name(hosting: Hosting, name: str, region_id: str) -> Image:
    """Find a system image available in a region.

    Args:
        hosting: Hosting service to query.
        name: Image name, e.g. 'Debian 12'.
        region_id: ID of the region the image must be available in.

    Returns:
        The image, including the ID of its source disk.

    Raises:
        ResourceNotFoundError: If the image does not exist in the region.
    """
    image = hosting.image_by_name(name, Region(id=region_id, code=""))
    if not image.disk_id:
        raise ResourceNotFoundError("image", name)
    logger.debug(f"Image '{name}' in region {region_id} resolved to disk {image.disk_id}")
    return image

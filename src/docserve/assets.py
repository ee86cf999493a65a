"""Asset discovery for bundled page assets.

The stylesheet and client scripts embedded into every generated page ship
as package data next to this module.
"""

from functools import cache
from importlib.resources import files


@cache
def read_asset(name: str) -> str:
    """Return the text of a bundled asset.

    Args:
        name: File name inside the static directory (e.g., "style.css")

    Returns:
        Asset contents.

    Raises:
        FileNotFoundError: If the asset is not bundled.
    """
    asset = files("docserve").joinpath("static").joinpath(name)
    if not asset.is_file():
        msg = f"Bundled asset not found: {name}. Reinstall the docserve package."
        raise FileNotFoundError(msg)
    return asset.read_text(encoding="utf-8")

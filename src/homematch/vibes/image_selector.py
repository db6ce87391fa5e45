"""
Strategic Image Selection

Picks up to 18 gallery images covering the rooms buyers care about,
using typical Zillow gallery positions for each room.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

DEFAULT_MAX_IMAGES = 18

HOUSE_TYPES = {"single_family", "house", "townhome"}
YARD_MIN_LOT_SQFT = 3000


@dataclass
class SelectedImage:
    url: str
    category: str
    index: int


@dataclass
class ImageSelection:
    selected_images: List[SelectedImage] = field(default_factory=list)
    strategy: str = "single"
    total_available: int = 0

    @property
    def urls(self) -> List[str]:
        return [image.url for image in self.selected_images]


def _strategy_for(count: int) -> str:
    if count >= 12:
        return "comprehensive"
    if count >= 6:
        return "balanced"
    if count >= 2:
        return "limited"
    return "single"


def select_strategic_images(
    images: Optional[Sequence[str]],
    property_type: Optional[str] = None,
    lot_size_sqft: Optional[int] = None,
    max_images: int = DEFAULT_MAX_IMAGES,
) -> ImageSelection:
    """
    Select strategic images from a gallery.

    Order of preference: hero, kitchen (2), living (2), bedrooms (3),
    bathrooms (2), outdoor (2, houses with a yard), dining, office,
    garage, then remaining images in gallery order.

    Args:
        images: Gallery image URLs
        property_type: Listing type, decides whether outdoor shots count
        lot_size_sqft: Lot size, decides whether outdoor shots count
        max_images: Upper bound on selected images

    Returns:
        ImageSelection
    """
    if not images:
        return ImageSelection()

    images = list(images)
    total = len(images)
    selected: List[SelectedImage] = []
    used: set = set()

    def add(index: int, category: str) -> bool:
        if 0 <= index < total and index not in used:
            selected.append(SelectedImage(url=images[index], category=category, index=index))
            used.add(index)
            return True
        return False

    def add_many(candidates: Sequence[int], category: str, count: int) -> None:
        added = 0
        for index in candidates:
            if added >= count or len(selected) >= max_images:
                break
            if add(index, category):
                added += 1

    add(0, "hero")
    if total == 1:
        return ImageSelection(selected_images=selected, strategy="single", total_available=total)

    add_many([3, 4, 5, 2, 6], "kitchen", 2)
    add_many([1, 2, 4, 5], "living", 2)

    if total > 5:
        add_many([6, 7, 8, 9, 10, 11, 5], "bedroom", 3)

    if total > 7:
        add_many([9, 10, 11, 12, 8, 13, 14], "bathroom", 2)

    has_yard = lot_size_sqft is not None and lot_size_sqft > YARD_MIN_LOT_SQFT
    if property_type in HOUSE_TYPES and has_yard:
        last = [i for i in (total - 1, total - 2, total - 3, total - 4) if i > 0]
        add_many(last, "outdoor", 2)

    if total > 10:
        add_many([5, 6, 4, 7], "dining", 1)

    if total > 12:
        add_many([12, 13, 14, 11, 15], "office", 1)

    if total > 15:
        add_many([total - 5, total - 6, total - 4], "garage", 1)

    # Fill in gallery order so a given gallery always yields the same selection
    for index in range(total):
        if len(selected) >= max_images:
            break
        add(index, "additional")

    return ImageSelection(
        selected_images=selected,
        strategy=_strategy_for(len(selected)),
        total_available=total,
    )

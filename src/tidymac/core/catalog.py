"""Static catalog of cleanup categories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator

from tidymac.models.category import CleanupCategory
from tidymac.utils import home_dir, is_within, real_path

log = logging.getLogger(__name__)

# Display order is the tuple order. Only these locations are ever offered
# for cleaning; user documents must never appear here.
DEFAULT_CATEGORIES: tuple[CleanupCategory, ...] = (
    CleanupCategory(
        id="system_cache",
        name="System Caches",
        description="Caches shared by all users in /Library/Caches.",
        icon="gearshape.fill",
        path_templates=("/Library/Caches",),
        requires_elevated_access=True,
        requires_full_disk_access=True,
        sort_order=10,
    ),
    CleanupCategory(
        id="user_cache",
        name="User Caches",
        description="Per-user application caches. Applications rebuild them as needed.",
        icon="person.fill",
        path_templates=("~/Library/Caches",),
        sort_order=20,
    ),
    CleanupCategory(
        id="application_logs",
        name="Application Logs",
        description="Log files written by applications for the current user.",
        icon="doc.text.fill",
        path_templates=("~/Library/Logs",),
        requires_full_disk_access=True,
        sort_order=30,
    ),
    CleanupCategory(
        id="system_logs",
        name="System Logs",
        description="Log files written by system services in /Library/Logs.",
        icon="doc.text.fill",
        path_templates=("/Library/Logs",),
        requires_elevated_access=True,
        requires_full_disk_access=True,
        sort_order=35,
    ),
    CleanupCategory(
        id="xcode_data",
        name="Xcode Data",
        description="Derived data, archives and simulator caches produced by Xcode.",
        icon="hammer.fill",
        path_templates=(
            "~/Library/Developer/Xcode/DerivedData",
            "~/Library/Developer/Xcode/Archives",
            "~/Library/Developer/CoreSimulator/Caches",
        ),
        sort_order=40,
    ),
    CleanupCategory(
        id="browser_cache",
        name="Browser Caches",
        description="Cached web content from Safari, Chrome and Firefox.",
        icon="globe",
        path_templates=(
            "~/Library/Caches/com.apple.Safari",
            "~/Library/Caches/Google/Chrome",
            "~/Library/Caches/Firefox",
        ),
        sort_order=50,
    ),
    CleanupCategory(
        id="trash",
        name="Trash",
        description="Files already moved to the Trash. Removing them is permanent.",
        icon="trash.fill",
        path_templates=("~/.Trash",),
        sort_order=60,
    ),
    CleanupCategory(
        id="downloads",
        name="Downloads",
        description="Files in the Downloads folder.",
        icon="arrow.down.circle.fill",
        path_templates=("~/Downloads",),
        requires_user_consent=True,
        sort_order=70,
    ),
    CleanupCategory(
        id="mail_attachments",
        name="Mail Attachments",
        description="Attachments downloaded by Mail.",
        icon="paperclip",
        path_templates=("~/Library/Containers/com.apple.mail/Data/Library/Mail Downloads",),
        requires_full_disk_access=True,
        requires_user_consent=True,
        sort_order=80,
    ),
    CleanupCategory(
        id="npm_cache",
        name="npm Cache",
        description="Packages cached by npm.",
        icon="shippingbox.fill",
        path_templates=("~/.npm",),
        sort_order=90,
    ),
    CleanupCategory(
        id="yarn_cache",
        name="Yarn Cache",
        description="Packages cached by Yarn.",
        icon="link",
        path_templates=("~/.yarn/cache", "~/.cache/yarn"),
        sort_order=100,
    ),
    CleanupCategory(
        id="cocoapods_cache",
        name="CocoaPods Cache",
        description="Pod specs and sources cached by CocoaPods.",
        icon="cube.fill",
        path_templates=("~/Library/Caches/CocoaPods",),
        sort_order=110,
    ),
    CleanupCategory(
        id="homebrew_cache",
        name="Homebrew Cache",
        description="Downloaded bottles and sources kept by Homebrew.",
        icon="mug.fill",
        path_templates=("~/Library/Caches/Homebrew",),
        sort_order=120,
    ),
    CleanupCategory(
        id="docker_data",
        name="Docker Data",
        description="Docker Desktop virtual machine data.",
        icon="tray.2.fill",
        path_templates=("~/Library/Containers/com.docker.docker/Data",),
        sort_order=130,
    ),
    CleanupCategory(
        id="ios_simulators",
        name="iOS Simulators",
        description="Simulator devices and their caches.",
        icon="iphone",
        path_templates=(
            "~/Library/Developer/CoreSimulator/Devices",
            "~/Library/Developer/CoreSimulator/Caches",
        ),
        sort_order=140,
    ),
    CleanupCategory(
        id="ios_backups",
        name="iOS Backups",
        description="Local device backups made by Finder or iTunes.",
        icon="externaldrive.fill",
        path_templates=("~/Library/Application Support/MobileSync/Backup",),
        requires_full_disk_access=True,
        requires_user_consent=True,
        sort_order=150,
    ),
)


class CategoryCatalog:
    """Ordered, read-only collection of cleanup categories."""

    def __init__(self, categories: Iterable[CleanupCategory] = DEFAULT_CATEGORIES, home: Path | None = None) -> None:
        self._categories: dict[str, CleanupCategory] = {}
        self.home = home
        for category in categories:
            if category.id in self._categories:
                log.warning("Category '%s' already defined, skipping duplicate", category.id)
                continue
            self._categories[category.id] = category

    def get(self, category_id: str) -> CleanupCategory | None:
        """Get a category by its ID."""
        return self._categories.get(category_id)

    def all(self) -> list[CleanupCategory]:
        """All categories in display order (by ``sort_order``, then registration)."""
        return sorted(self._categories.values(), key=lambda c: c.sort_order)

    def requiring_elevation(self) -> list[CleanupCategory]:
        return [c for c in self._categories.values() if c.requires_elevated_access]

    def resolve(self, category: CleanupCategory) -> list[Path]:
        """Resolve a category's path templates for this catalog's home directory."""
        return category.resolve_paths(self.home or home_dir())

    def category_for_path(self, path: Path | str) -> CleanupCategory | None:
        """Return the category whose root contains *path*; the deepest root wins.

        Nested roots (``~/Library/Caches/Homebrew`` inside ``~/Library/Caches``)
        resolve to the more specific category.
        """
        path = real_path(path)
        best: tuple[int, CleanupCategory] | None = None
        for category in self._categories.values():
            for root in self.resolve(category):
                if is_within(path, real_path(root)):
                    depth = len(root.parts)
                    if best is None or depth > best[0]:
                        best = (depth, category)
        return best[1] if best else None

    def requires_elevation(self, path: Path | str) -> bool:
        """Whether deleting *path* has to go through the privilege broker."""
        path = real_path(path)
        for category in self.requiring_elevation():
            if any(is_within(path, real_path(root)) for root in self.resolve(category)):
                return True
        return False

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[CleanupCategory]:
        return iter(self.all())

    def __contains__(self, category_id: str) -> bool:
        return category_id in self._categories


def default_catalog(home: Path | None = None) -> CategoryCatalog:
    """Build the catalog of built-in categories."""
    return CategoryCatalog(DEFAULT_CATEGORIES, home=home)

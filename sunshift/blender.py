"""Image blending and cache management for cross-fading wallpapers."""

import hashlib
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from PIL import Image


logger = logging.getLogger(__name__)

BLEND_QUALITY = 98


class ImageBlender:
    """Composites two theme images into a single wallpaper."""

    def blend_images(self, img1_path: Path, img2_path: Path, alpha: float) -> Image.Image:
        """
        Blend two images using alpha compositing.

        Args:
            img1_path: Current image (blend FROM)
            img2_path: Next image (blend TO)
            alpha: Blend ratio 0.0-1.0 (0=all img1, 1=all img2)

        Returns:
            Blended PIL Image
        """
        if not 0.0 <= alpha <= 1.0:
            raise ValueError(f"Alpha must be between 0.0 and 1.0, got {alpha}")

        logger.debug(f"Blending {img1_path.name} -> {img2_path.name} at alpha={alpha:.2f}")

        with Image.open(img1_path) as src1, Image.open(img2_path) as src2:
            img1 = src1.convert('RGB')
            img2 = src2.convert('RGB')

        # Theme images normally share a size; the first image wins otherwise
        if img2.size != img1.size:
            logger.debug(f"Resizing {img2_path.name} from {img2.size} to {img1.size}")
            img2 = img2.resize(img1.size, Image.Resampling.LANCZOS)

        return Image.blend(img1, img2, alpha)


class BlendCache:
    """
    On-disk store of rendered blends.

    The same image pairs are blended at the same percents every day, so
    entries are kept by last use rather than age. Each entry remembers the
    hashes of its two sources and is dropped once either file changes.
    """

    def __init__(self, cache_dir: Path, max_cache_size_mb: int = 500):
        """
        Initialize blend cache.

        Args:
            cache_dir: Base cache directory (blends live in a `blends` subdirectory)
            max_cache_size_mb: Size limit before least recently used blends are evicted
        """
        self.cache_dir = cache_dir / "blends"
        self.metadata_file = cache_dir / "metadata.json"
        self.max_cache_size_bytes = max_cache_size_mb * 1024 * 1024

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.metadata = self._load_metadata()
        # path -> (mtime_ns, size, sha256)
        self._hashes: dict = {}

    def _load_metadata(self) -> dict:
        if not self.metadata_file.exists():
            return {}
        try:
            with open(self.metadata_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable cache metadata: {e}")
            return {}

    def _save_metadata(self):
        try:
            with open(self.metadata_file, 'w') as f:
                json.dump(self.metadata, f, indent=2)
        except IOError as e:
            logger.error(f"Failed to save cache metadata: {e}")

    def source_hash(self, path: Path) -> str:
        """SHA256 of a source image, recomputed only when the file changes."""
        stat = path.stat()
        known = self._hashes.get(path)
        if known and known[0] == stat.st_mtime_ns and known[1] == stat.st_size:
            return known[2]

        sha256 = hashlib.sha256()
        with open(path, 'rb') as f:
            for chunk in iter(lambda: f.read(65536), b''):
                sha256.update(chunk)

        digest = sha256.hexdigest()
        self._hashes[path] = (stat.st_mtime_ns, stat.st_size, digest)
        return digest

    def get_cache_key(self, img1_path: Path, img2_path: Path, percent: float) -> str:
        """
        File name of the blend of two theme images at a percent.

        The percent is rounded to whole percents, matching the smallest step
        the scheduler renders.
        """
        return f"{img1_path.parent.name}_{img1_path.stem}-{img2_path.stem}_{percent:.2f}.jpg"

    def get_cached_blend(self, cache_key: str, img1_path: Path, img2_path: Path) -> Optional[Path]:
        """
        Look up a blend, discarding it if a source image changed.

        Returns:
            Path to the cached blend, or None
        """
        cached_path = self.cache_dir / cache_key
        entry = self.metadata.get(cache_key)
        if entry is None or not cached_path.exists():
            return None

        sources = [self.source_hash(img1_path), self.source_hash(img2_path)]
        if entry.get('sources') != sources:
            logger.debug(f"Sources of {cache_key} changed, discarding blend")
            self._evict(cache_key)
            self._save_metadata()
            return None

        entry['last_used'] = datetime.now().isoformat()
        self._save_metadata()
        logger.debug(f"Using cached blend: {cache_key}")
        return cached_path

    def save_blend(self, image: Image.Image, cache_key: str, img1_path: Path, img2_path: Path) -> Path:
        """
        Store a rendered blend.

        Returns:
            Path to the saved blend
        """
        cache_path = self.cache_dir / cache_key
        image.save(cache_path, "JPEG", quality=BLEND_QUALITY, optimize=True, subsampling=0)

        self.metadata[cache_key] = {
            'sources': [self.source_hash(img1_path), self.source_hash(img2_path)],
            'last_used': datetime.now().isoformat(),
            'size_bytes': cache_path.stat().st_size,
        }
        logger.debug(f"Saved blend to cache: {cache_key}")

        self._enforce_cache_limit()
        self._save_metadata()
        return cache_path

    def _evict(self, cache_key: str):
        (self.cache_dir / cache_key).unlink(missing_ok=True)
        self.metadata.pop(cache_key, None)

    def _enforce_cache_limit(self):
        """Evict least recently used blends until the cache fits its limit."""
        total_size = sum(entry.get('size_bytes', 0) for entry in self.metadata.values())
        if total_size <= self.max_cache_size_bytes:
            return

        logger.info(f"Blend cache at {total_size / 1024 / 1024:.1f}MB, evicting least recently used")
        by_use = sorted(self.metadata.items(), key=lambda item: item[1].get('last_used', ''))

        for cache_key, entry in by_use:
            if total_size <= self.max_cache_size_bytes:
                break
            total_size -= entry.get('size_bytes', 0)
            self._evict(cache_key)
            logger.debug(f"Evicted cached blend: {cache_key}")


def compose_blend(
    blender: ImageBlender,
    cache: Optional[BlendCache],
    img1_path: Path,
    img2_path: Path,
    percent: float,
    output_path: Path
) -> Path:
    """
    Produce the blended wallpaper file for a percent, reusing the cache.

    Args:
        blender: ImageBlender instance
        cache: BlendCache, or None to always write `output_path`
        img1_path: Current image
        img2_path: Next image
        percent: Blend ratio 0.0-1.0
        output_path: Where to write when the cache is disabled

    Returns:
        Path of the file to display
    """
    cache_key = None
    if cache:
        cache_key = cache.get_cache_key(img1_path, img2_path, percent)
        cached = cache.get_cached_blend(cache_key, img1_path, img2_path)
        if cached:
            return cached

    blended = blender.blend_images(img1_path, img2_path, percent)
    if cache:
        return cache.save_blend(blended, cache_key, img1_path, img2_path)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    blended.save(output_path, "JPEG", quality=BLEND_QUALITY)
    return output_path

"""
Image Loader 测试配置文件

这个文件包含 pytest fixtures（测试夹具）和测试辅助函数。

关键概念：
- 每个测试都使用 tmp_path 下独立的缓存目录，测试之间互不干扰
- FakeDownloader 代替真实网络请求，可以控制进度事件和失败
"""

import sys
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import pytest
from PIL import Image

# 添加 backend 目录到 Python 路径
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from image_cache import DiskImageCache
from image_downloader import DownloadEvent
from image_loader import ImageLoader


# ============================================
# Image Helpers
# ============================================

def make_image(size: Tuple[int, int] = (400, 200), color=(200, 30, 30), mode: str = "RGB") -> Image.Image:
    """创建一张纯色测试图片"""
    return Image.new(mode, size, color)


def make_image_bytes(size: Tuple[int, int] = (400, 200), fmt: str = "PNG") -> bytes:
    """创建一张测试图片并编码为字节"""
    output = BytesIO()
    make_image(size).save(output, format=fmt)
    return output.getvalue()


# ============================================
# Fake Downloader
# ============================================

class FakeDownloader:
    """
    模拟下载器。

    先产生 chunks 个进度事件，然后：
    - error 不为空时抛出 error
    - image 不为空时产生终止事件
    - 否则直接结束（没有终止事件）
    """

    def __init__(
        self,
        image: Optional[Image.Image] = None,
        error: Optional[Exception] = None,
        chunks: int = 3,
        chunk_size: int = 100,
    ):
        self.image = image
        self.error = error
        self.chunks = chunks
        self.chunk_size = chunk_size
        self.calls = []
        self.finished_streams = 0
        self.closed = False

    async def download(self, url: str):
        self.calls.append(url)
        total = self.chunks * self.chunk_size
        try:
            for i in range(1, self.chunks + 1):
                yield DownloadEvent(bytes_written=i * self.chunk_size, bytes_expected=total)
            if self.error is not None:
                raise self.error
            if self.image is not None:
                yield DownloadEvent(bytes_written=total, bytes_expected=total, image=self.image)
        finally:
            self.finished_streams += 1

    async def close(self):
        self.closed = True


# ============================================
# Fixtures
# ============================================

@pytest.fixture
def cache_dir(tmp_path):
    """每个测试独立的缓存目录"""
    return tmp_path / "image_cache"


@pytest.fixture
def make_cache(cache_dir):
    """
    创建 DiskImageCache 的工厂。

    使用方式：
    ```python
    def test_something(make_cache):
        cache = make_cache(items=2, byte_capacity=100)
    ```
    """
    def factory(items: int = 10, byte_capacity: int = 1000) -> DiskImageCache:
        return DiskImageCache(
            item_capacity=items,
            byte_capacity=byte_capacity,
            cache_dir=str(cache_dir),
        )

    return factory


@pytest.fixture
def make_loader(make_cache):
    """创建使用 FakeDownloader 的 ImageLoader"""
    def factory(downloader: FakeDownloader, items: int = 10, byte_capacity: int = 10 * 1024 * 1024) -> ImageLoader:
        return ImageLoader(make_cache(items, byte_capacity), downloader, jpeg_quality=90)

    return factory


# ============================================
# Helper Functions
# ============================================

def assert_capacity_invariant(cache: DiskImageCache):
    """
    断言缓存的容量不变量成立：
    - 可用条目数 + 已缓存条目数 == 总条目数
    - 可用字节数 + 已缓存字节数 == 总字节数
    - 元数据中的 key 集合与磁盘上的文件集合一致
    """
    metadata = cache.metadata
    assert metadata.available_item_capacity + len(metadata.cached_keys) == metadata.total_item_capacity
    assert metadata.available_byte_capacity + sum(metadata.entry_sizes.values()) == metadata.total_byte_capacity
    assert len(set(metadata.cached_keys)) == len(metadata.cached_keys)
    assert set(cache.storage.list_blobs()) == set(metadata.cached_keys)

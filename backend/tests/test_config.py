"""
ImageLoaderConfig 测试

运行测试：
    cd backend
    pytest tests/test_config.py -v
"""

import pytest

from image_loader import ImageLoader, ImageLoaderConfig


class TestConfig:
    """配置测试"""

    def test_defaults(self, monkeypatch):
        """测试：没有环境变量时使用默认值"""
        for name in (
            "IMAGE_CACHE_DIR",
            "IMAGE_CACHE_ITEM_CAPACITY",
            "IMAGE_CACHE_DISK_CAPACITY_KB",
            "IMAGE_JPEG_QUALITY",
            "IMAGE_DOWNLOAD_TIMEOUT",
        ):
            monkeypatch.delenv(name, raising=False)

        config = ImageLoaderConfig.from_env()

        assert config.cache_dir == "./image_cache"
        assert config.item_capacity == 100
        assert config.byte_capacity == 50 * 1024 * 1024

    def test_env_overrides(self, monkeypatch, tmp_path):
        """测试：环境变量覆盖默认值，磁盘容量按 KB 计算"""
        monkeypatch.setenv("IMAGE_CACHE_DIR", str(tmp_path))
        monkeypatch.setenv("IMAGE_CACHE_ITEM_CAPACITY", "7")
        monkeypatch.setenv("IMAGE_CACHE_DISK_CAPACITY_KB", "2")
        monkeypatch.setenv("IMAGE_JPEG_QUALITY", "85")
        monkeypatch.setenv("IMAGE_DOWNLOAD_TIMEOUT", "3.5")

        config = ImageLoaderConfig.from_env()

        assert config.cache_dir == str(tmp_path)
        assert config.item_capacity == 7
        assert config.byte_capacity == 2048
        assert config.jpeg_quality == 85
        assert config.download_timeout == 3.5

    @pytest.mark.asyncio
    async def test_loader_from_config(self, tmp_path):
        """测试：根据配置创建 loader 和缓存"""
        config = ImageLoaderConfig(cache_dir=str(tmp_path / "cache"), item_capacity=3, disk_capacity_kb=1)

        loader = ImageLoader.from_config(config)
        try:
            assert loader.cache.metadata.total_item_capacity == 3
            assert loader.cache.metadata.total_byte_capacity == 1024
            assert loader.jpeg_quality == 100
            assert (tmp_path / "cache" / "metadata.json").exists()
        finally:
            await loader.close()

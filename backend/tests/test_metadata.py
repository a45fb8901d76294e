"""
CacheMetadata 测试

运行测试：
    cd backend
    pytest tests/test_metadata.py -v
"""

import pytest

from image_cache import CacheMetadata


class TestCacheMetadata:
    """元数据记录测试"""

    def test_empty_metadata(self):
        """测试：新建元数据可用容量等于总容量"""
        metadata = CacheMetadata.empty(item_capacity=3, byte_capacity=100)

        assert metadata.available_item_capacity == 3
        assert metadata.available_byte_capacity == 100
        assert metadata.least_recent() is None

    def test_empty_rejects_negative_capacity(self):
        """测试：负数容量被拒绝"""
        with pytest.raises(ValueError):
            CacheMetadata.empty(item_capacity=-1, byte_capacity=100)

    def test_record_insert_and_removal(self):
        """测试：插入和移除时容量正确增减"""
        metadata = CacheMetadata.empty(3, 100)
        metadata.record_insert("a.jpg", 30)
        metadata.record_insert("b.jpg", 20)

        assert metadata.cached_keys == ["b.jpg", "a.jpg"]
        assert metadata.least_recent() == "a.jpg"
        assert metadata.available_byte_capacity == 50

        assert metadata.record_removal("a.jpg") == 30
        assert metadata.available_item_capacity == 2
        assert metadata.available_byte_capacity == 80

    def test_record_insert_rejects_duplicate(self):
        """测试：同一 key 不能插入两次"""
        metadata = CacheMetadata.empty(3, 100)
        metadata.record_insert("a.jpg", 10)

        with pytest.raises(ValueError):
            metadata.record_insert("a.jpg", 10)

    def test_touch_moves_to_front(self):
        """测试：touch 把 key 移到最前"""
        metadata = CacheMetadata.empty(3, 100)
        for key in ("a.jpg", "b.jpg", "c.jpg"):
            metadata.record_insert(key, 1)

        metadata.touch("a.jpg")

        assert metadata.cached_keys == ["a.jpg", "c.jpg", "b.jpg"]

    def test_has_room_for(self):
        """测试：条目和字节两个配额都要满足"""
        metadata = CacheMetadata.empty(1, 100)

        assert metadata.has_room_for(100)
        assert not metadata.has_room_for(101)

        metadata.record_insert("a.jpg", 1)
        assert not metadata.has_room_for(1)

    def test_dict_round_trip(self):
        """测试：to_dict / from_dict 保持内容一致"""
        metadata = CacheMetadata.empty(3, 100)
        metadata.record_insert("a.jpg", 10)

        restored = CacheMetadata.from_dict(metadata.to_dict())

        assert restored == metadata

    def test_from_dict_missing_field(self):
        """测试：缺少字段时抛出 ValueError"""
        data = CacheMetadata.empty(3, 100).to_dict()
        del data["totalByteCapacity"]

        with pytest.raises(ValueError):
            CacheMetadata.from_dict(data)

    def test_from_dict_unknown_version(self):
        """测试：未知版本号被拒绝"""
        data = CacheMetadata.empty(3, 100).to_dict()
        data["version"] = 99

        with pytest.raises(ValueError):
            CacheMetadata.from_dict(data)

    def test_from_dict_duplicate_keys(self):
        """测试：重复 key 被拒绝"""
        data = {
            "totalItemCapacity": 3,
            "availableItemCapacity": 1,
            "totalByteCapacity": 100,
            "availableByteCapacity": 80,
            "cachedKeys": ["a.jpg", "a.jpg"],
            "entrySizes": {"a.jpg": 10},
        }

        with pytest.raises(ValueError):
            CacheMetadata.from_dict(data)

    def test_from_dict_not_a_mapping(self):
        """测试：非字典数据抛出 ValueError"""
        with pytest.raises(ValueError):
            CacheMetadata.from_dict(["not", "a", "dict"])

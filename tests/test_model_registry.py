"""Tests for the node registry and the catalog it loads."""

import pytest

from falgraph.errors import NodeExecutionError
from falgraph.model_registry import (
    NODE_SPECS,
    VariantEndpoint,
    estimate_expected_ms,
    get_node_schema,
    get_node_spec,
    list_categories,
    list_nodes,
    register,
    require_node_spec,
)
from falgraph.params import normalize_params

ALL_UIDS = [n["uid"] for n in list_nodes()]


class TestLookup:
    def test_get_known_node(self):
        spec = get_node_spec("fal-veo3-text-to-video")
        assert spec.name.startswith("Veo 3")

    def test_get_unknown_node_returns_error_dict(self):
        result = get_node_spec("fal-nope")
        assert result["isError"] is True
        assert result["code"] == "NOT_FOUND"

    def test_require_unknown_node_raises(self):
        with pytest.raises(NodeExecutionError) as exc:
            require_node_spec("fal-nope")
        assert exc.value.code == "NOT_FOUND"

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            register(require_node_spec("fal-seedance-text-to-video"))


class TestListing:
    def test_list_nodes_sorted_by_category_then_name(self):
        nodes = list_nodes()
        keys = [(n["category"], n["name"]) for n in nodes]
        assert keys == sorted(keys)

    def test_category_filter_is_case_insensitive(self):
        nodes = list_nodes("video generation")
        assert nodes
        assert all(n["category"] == "Video Generation" for n in nodes)

    def test_categories(self):
        categories = list_categories()
        assert categories == sorted(categories)
        assert {"Image Generation", "Image Editing", "Video Generation", "Segmentation", "3D"} <= set(categories)

    def test_schema_shape(self):
        schema = get_node_schema("fal-flux-pro-text-to-image")
        assert schema["uid"] == "fal-flux-pro-text-to-image"
        assert "fal-ai/flux-pro/v1.1-ultra" in schema["endpoints"]
        seed = next(p for p in schema["parameters"] if p["name"] == "seed")
        assert seed["type"] == "int"
        assert seed["default"] == -1

    def test_schema_unknown(self):
        assert get_node_schema("missing")["code"] == "NOT_FOUND"


class TestVariantEndpoint:
    def test_resolves_by_param(self):
        endpoint = VariantEndpoint("model_variant", {"standard": "a", "fast": "b"})
        assert endpoint({"model_variant": "fast"}) == "b"

    def test_unknown_variant_uses_default(self):
        endpoint = VariantEndpoint("model_variant", {"standard": "a", "fast": "b"})
        assert endpoint({"model_variant": "turbo"}) == "a"
        assert endpoint({}) == "a"

    def test_seedance_endpoints(self):
        spec = require_node_spec("fal-seedance-image-to-video")
        assert spec.resolve_endpoint({"model_variant": "pro"}) == "fal-ai/bytedance/seedance/v1/pro/image-to-video"
        assert spec.resolve_endpoint({"model_variant": "lite"}) == "fal-ai/bytedance/seedance/v1/lite/image-to-video"

    def test_sora_pro_endpoint(self):
        spec = require_node_spec("fal-sora-2-text-to-video")
        assert spec.resolve_endpoint({"model_variant": "pro"}) == "fal-ai/sora-2/text-to-video/pro"


class TestCatalog:
    def test_catalog_size_and_unique_uids(self):
        nodes = list_nodes()
        assert len(nodes) >= 40
        assert len({n["uid"] for n in nodes}) == len(nodes)
        assert len(NODE_SPECS) == len(nodes)

    @pytest.mark.parametrize("uid", ALL_UIDS)
    def test_every_node_resolves_with_defaults(self, uid):
        spec = require_node_spec(uid)
        params = normalize_params(spec, {})
        for param in spec.params:
            if param.options:
                assert params[param.name] in param.options, param.name
        assert spec.resolve_endpoint(params).startswith("fal-ai/")
        assert estimate_expected_ms(spec, params) > 0
        assert spec.outputs

    def test_required_inputs_declared(self):
        spec = require_node_spec("fal-moondream2-object-detection")
        required = {i.name for i in spec.inputs if i.required}
        assert required == {"image", "object"}

    def test_media_groups(self):
        spec = require_node_spec("fal-nano-banana-edit")
        group = spec.get_group("images")
        assert group.payload_key == "image_urls"
        assert [i.name for i in spec.inputs if i.group == "images"] == ["image1", "image2", "image3", "image4"]

"""
Node Catalog

Declarative definitions for every hosted endpoint. Each family registers its
NodeSpecs on import; model-specific behavior lives only in small payload,
validation and result hooks.
"""

from typing import Any, Callable, Dict, List, Optional

from . import estimates
from .errors import InvalidParameterError
from .model_registry import (
    GroupSpec,
    InputSpec,
    NodeSpec,
    OutputSpec,
    ParamSpec,
    VariantEndpoint,
    fixed,
    register,
)
from .params import resolve_image_size, to_number
from .postprocess import require_any_output, sam3_image_outputs

# =============================================================================
# Shared Options
# =============================================================================

IMAGE_SIZE_PRESETS = [
    "landscape_4_3",
    "landscape_16_9",
    "portrait_4_3",
    "portrait_16_9",
    "square",
    "square_hd",
]
ASPECT_RATIOS = ["21:9", "16:9", "4:3", "3:2", "1:1", "2:3", "3:4", "9:16", "9:21"]
GEMINI_ASPECT_RATIOS = ["21:9", "16:9", "3:2", "4:3", "5:4", "1:1", "4:5", "3:4", "2:3", "9:16"]
SAFETY_LEVELS = ["1", "2", "3", "4", "5", "6"]
ACCELERATIONS = ["none", "regular", "high"]
SEEDANCE_ASPECT_RATIOS = ["21:9", "16:9", "4:3", "1:1", "3:4", "9:16", "9:21"]
SEEDANCE_DURATIONS = [str(n) for n in range(3, 13)]
UPSCALE_TARGETS = ["720p", "1080p", "1440p", "2160p"]

FINETUNE_REQUIRED = "Fine-tune ID is required for the selected model variant"


# =============================================================================
# Builders
# =============================================================================


def _prompt(required: bool = True, default: Any = None) -> InputSpec:
    return InputSpec("prompt", "text", required=required, payload_key="prompt", default=default)


def _image(name: str = "image", payload_key: Optional[str] = "image_url", required: bool = True) -> InputSpec:
    return InputSpec(name, "image", required=required, payload_key=payload_key)


def _image_group(prefix: str = "image", count: int = 4, group: str = "images") -> List[InputSpec]:
    return [InputSpec(f"{prefix}{n}", "image", group=group) for n in range(1, count + 1)]


def _seed() -> ParamSpec:
    return ParamSpec("seed", "seed", -1, min=-1, description="Random seed; -1 for random")


def _num_images(maximum: int = 4) -> ParamSpec:
    return ParamSpec("num_images", "int", 1, min=1, max=maximum)


def _sync_mode() -> ParamSpec:
    return ParamSpec("sync_mode", "bool", False, description="Return media inline instead of via CDN")


def _safety_checker() -> ParamSpec:
    return ParamSpec("enable_safety_checker", "bool", True)


def _safety_tolerance(**kwargs) -> ParamSpec:
    return ParamSpec("safety_tolerance", "str", "2", options=SAFETY_LEVELS, **kwargs)


def _output_format(options=("jpeg", "png"), default: str = "jpeg") -> ParamSpec:
    return ParamSpec("output_format", "str", default, options=list(options))


def _acceleration(default: str = "regular", options=ACCELERATIONS) -> ParamSpec:
    return ParamSpec("acceleration", "str", default, options=list(options))


def _image_size(default: str = "landscape_4_3", leading=(), trailing=(), **kwargs) -> ParamSpec:
    options = list(leading) + IMAGE_SIZE_PRESETS + list(trailing)
    return ParamSpec("image_size", "str", default, options=options, **kwargs)


def _custom_dims(width: int = 1024, height: int = 768, lo: int = 64, hi: int = 14142) -> List[ParamSpec]:
    return [
        ParamSpec("custom_width", "int", width, min=lo, max=hi, send=False),
        ParamSpec("custom_height", "int", height, min=lo, max=hi, send=False),
    ]


def _images_output(with_nsfw: bool = True) -> List[OutputSpec]:
    outputs = [
        OutputSpec("images", "image", source="images", many=True, required=True),
        OutputSpec("seed", "value"),
    ]
    if with_nsfw:
        outputs.append(OutputSpec("has_nsfw_concepts", "value", many=True))
    return outputs


def _video_output(with_seed: bool = False) -> List[OutputSpec]:
    outputs = [OutputSpec("video", "video", required=True)]
    if with_seed:
        outputs.append(OutputSpec("seed", "value"))
    return outputs


def _variant_in(*variants: str, param: str = "model_variant") -> Callable[[Dict[str, Any]], bool]:
    return lambda params: params.get(param) in variants


def _upload_ramp(start: int, per: int, cap: int) -> Callable[[int, int], int]:
    return lambda index, total: min(start + (index + 1) * per, cap)


# =============================================================================
# Hooks
# =============================================================================


def _chain(*hooks):
    """Compose build_payload hooks left to right."""

    def build(payload, params, run):
        for hook in hooks:
            payload = hook(payload, params, run)
        return payload

    return build


def _custom_size(param: str = "image_size", width: str = "custom_width", height: str = "custom_height"):
    def build(payload, params, run):
        payload[param] = resolve_image_size(params[param], params.get(width), params.get(height))
        return payload

    return build


def _strip_finetune(payload, params, run):
    if "finetune_id" in payload:
        payload["finetune_id"] = str(payload["finetune_id"]).strip()
    return payload


def _require_finetune(uid: str, *variants: str):
    def validate(params, values):
        if params.get("model_variant") in variants and not str(params.get("finetune_id") or "").strip():
            return InvalidParameterError(node_uid=uid, param_name="finetune_id", message=FINETUNE_REQUIRED)
        return None

    return validate


# =============================================================================
# Flux Pro
# =============================================================================

FLUX_PRO_T2I_ENDPOINTS = {
    "flux-pro-new": "fal-ai/flux-pro/new",
    "flux-pro-v1_1": "fal-ai/flux-pro/v1.1",
    "flux-pro-v1_1-ultra": "fal-ai/flux-pro/v1.1-ultra",
    "flux-pro-v1_1-ultra-finetuned": "fal-ai/flux-pro/v1.1-ultra-finetuned",
}
FLUX_PRO_T2I_BASE_MS = {
    "flux-pro-new": 26000,
    "flux-pro-v1_1": 22000,
    "flux-pro-v1_1-ultra": 32000,
    "flux-pro-v1_1-ultra-finetuned": 34000,
}
FLUX_PRO_LABELS = {
    "flux-pro-new": "Flux Pro New",
    "flux-pro-v1_1": "Flux Pro v1.1",
    "flux-pro-v1_1-ultra": "Flux Pro v1.1 Ultra",
    "flux-pro-v1_1-ultra-finetuned": "Flux Pro v1.1 Ultra (Fine-tuned)",
    "flux-pro-v1-canny": "Flux Pro Canny",
    "flux-pro-v1-canny-finetuned": "Flux Pro Canny (Fine-tuned)",
    "flux-pro-v1-depth": "Flux Pro Depth",
    "flux-pro-v1-depth-finetuned": "Flux Pro Depth (Fine-tuned)",
    "flux-pro-v1-fill": "Flux Pro Fill",
    "flux-pro-v1-fill-finetuned": "Flux Pro Fill (Fine-tuned)",
    "flux-pro-v1-redux": "Flux Pro v1 Redux",
    "flux-pro-v1_1-redux": "Flux Pro v1.1 Redux",
    "flux-pro-v1_1-ultra-redux": "Flux Pro v1.1 Ultra Redux",
}

FLUX_PRO_CONTROL_ENDPOINTS = {
    "flux-pro-v1-canny": "fal-ai/flux-pro/v1/canny",
    "flux-pro-v1-canny-finetuned": "fal-ai/flux-pro/v1/canny-finetuned",
    "flux-pro-v1-depth": "fal-ai/flux-pro/v1/depth",
    "flux-pro-v1-depth-finetuned": "fal-ai/flux-pro/v1/depth-finetuned",
}
FLUX_PRO_CONTROL_BASE_MS = {
    "flux-pro-v1-canny": 28000,
    "flux-pro-v1-canny-finetuned": 30000,
    "flux-pro-v1-depth": 28000,
    "flux-pro-v1-depth-finetuned": 30000,
}

FLUX_PRO_FILL_ENDPOINTS = {
    "flux-pro-v1-fill": "fal-ai/flux-pro/v1/fill",
    "flux-pro-v1-fill-finetuned": "fal-ai/flux-pro/v1/fill-finetuned",
}
FLUX_PRO_FILL_BASE_MS = {"flux-pro-v1-fill": 30000, "flux-pro-v1-fill-finetuned": 32000}

FLUX_PRO_REDUX_ENDPOINTS = {
    "flux-pro-v1-redux": "fal-ai/flux-pro/v1/redux",
    "flux-pro-v1_1-redux": "fal-ai/flux-pro/v1.1/redux",
    "flux-pro-v1_1-ultra-redux": "fal-ai/flux-pro/v1.1-ultra/redux",
}
FLUX_PRO_REDUX_BASE_MS = {
    "flux-pro-v1-redux": 24000,
    "flux-pro-v1_1-redux": 25000,
    "flux-pro-v1_1-ultra-redux": 32000,
}


def _flux_pro_queue_message(params: Dict[str, Any]) -> str:
    label = FLUX_PRO_LABELS.get(params.get("model_variant"), "Flux Pro")
    return f"Waiting for {label}..."


def _finetune_params(*variants: str) -> List[ParamSpec]:
    include = _variant_in(*variants)
    return [
        ParamSpec("finetune_id", "str", "", include=include, label="Fine-tune ID"),
        ParamSpec("finetune_strength", "float", 1, min=0, max=2, include=include),
    ]


_T2I_SIZED = _variant_in("flux-pro-new", "flux-pro-v1_1")
_T2I_ULTRA = _variant_in("flux-pro-v1_1-ultra", "flux-pro-v1_1-ultra-finetuned")

register(
    NodeSpec(
        uid="fal-flux-pro-text-to-image",
        name="Flux Pro Text to Image",
        category="Image Generation",
        description="Generate images with the Flux Pro family",
        endpoint=VariantEndpoint("model_variant", FLUX_PRO_T2I_ENDPOINTS),
        inputs=[_prompt()],
        params=[
            ParamSpec("model_variant", "str", "flux-pro-new", options=list(FLUX_PRO_T2I_ENDPOINTS), send=False),
            _num_images(),
            _image_size(include=_T2I_SIZED),
            ParamSpec("num_inference_steps", "int", 28, min=1, max=50, include=_variant_in("flux-pro-new")),
            ParamSpec("guidance_scale", "float", 3.5, min=1, max=20, include=_variant_in("flux-pro-new")),
            ParamSpec("aspect_ratio", "str", "16:9", options=ASPECT_RATIOS, include=_T2I_ULTRA),
            _output_format(),
            _sync_mode(),
            _safety_tolerance(),
            ParamSpec(
                "enable_safety_checker",
                "bool",
                True,
                include=_variant_in("flux-pro-v1_1", "flux-pro-v1_1-ultra", "flux-pro-v1_1-ultra-finetuned"),
            ),
            ParamSpec("enhance_prompt", "bool", False),
            ParamSpec("raw", "bool", False, include=_T2I_ULTRA, description="Less processed, more natural output"),
            _seed(),
            *_finetune_params("flux-pro-v1_1-ultra-finetuned"),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_variant_images(FLUX_PRO_T2I_BASE_MS, 15000, 120000, sync=1.25),
        queue_message=_flux_pro_queue_message,
        finalizing_message="Finalizing images...",
        validate=_require_finetune("fal-flux-pro-text-to-image", "flux-pro-v1_1-ultra-finetuned"),
        build_payload=_strip_finetune,
        error_message="Failed to generate images with Flux Pro",
    ),
    NodeSpec(
        uid="fal-flux-pro-control-image",
        name="Flux Pro Control Image Generation",
        category="Image Generation",
        description="Canny or depth guided generation",
        endpoint=VariantEndpoint("model_variant", FLUX_PRO_CONTROL_ENDPOINTS),
        inputs=[_prompt(), _image("control_image", "control_image_url")],
        params=[
            ParamSpec("model_variant", "str", "flux-pro-v1-canny", options=list(FLUX_PRO_CONTROL_ENDPOINTS), send=False),
            _num_images(),
            _image_size(),
            ParamSpec("num_inference_steps", "int", 28, min=1, max=50),
            ParamSpec("guidance_scale", "float", 3.5, min=1, max=40),
            _output_format(),
            _sync_mode(),
            _safety_tolerance(),
            ParamSpec("enhance_prompt", "bool", False),
            _seed(),
            *_finetune_params("flux-pro-v1-canny-finetuned", "flux-pro-v1-depth-finetuned"),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_variant_images(FLUX_PRO_CONTROL_BASE_MS, 18000, 120000, sync=1.25),
        queue_message=_flux_pro_queue_message,
        finalizing_message="Finalizing images...",
        preparing_message="Preparing control image...",
        validate=_require_finetune(
            "fal-flux-pro-control-image", "flux-pro-v1-canny-finetuned", "flux-pro-v1-depth-finetuned"
        ),
        build_payload=_strip_finetune,
        error_message="Failed to generate images with Flux Pro Control",
    ),
    NodeSpec(
        uid="fal-flux-pro-fill",
        name="Flux Pro Image Fill",
        category="Image Editing",
        description="Inpaint the masked region of an image",
        endpoint=VariantEndpoint("model_variant", FLUX_PRO_FILL_ENDPOINTS),
        inputs=[_prompt(), _image("image", "image_url"), _image("mask", "mask_url")],
        params=[
            ParamSpec("model_variant", "str", "flux-pro-v1-fill", options=list(FLUX_PRO_FILL_ENDPOINTS), send=False),
            _num_images(),
            _output_format(),
            _sync_mode(),
            _safety_tolerance(),
            ParamSpec("enhance_prompt", "bool", False),
            _seed(),
            *_finetune_params("flux-pro-v1-fill-finetuned"),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_variant_images(FLUX_PRO_FILL_BASE_MS, 18000, 120000, sync=1.2),
        queue_message=_flux_pro_queue_message,
        finalizing_message="Finalizing images...",
        preparing_message="Preparing input assets...",
        validate=_require_finetune("fal-flux-pro-fill", "flux-pro-v1-fill-finetuned"),
        build_payload=_strip_finetune,
        error_message="Failed to fill image with Flux Pro",
    ),
    NodeSpec(
        uid="fal-flux-pro-redux",
        name="Flux Pro Image Redux",
        category="Image Generation",
        description="Image variations, optionally steered by a prompt",
        endpoint=VariantEndpoint("model_variant", FLUX_PRO_REDUX_ENDPOINTS),
        inputs=[_image("image", "image_url"), _prompt(required=False)],
        params=[
            ParamSpec("model_variant", "str", "flux-pro-v1_1-redux", options=list(FLUX_PRO_REDUX_ENDPOINTS), send=False),
            _num_images(),
            _image_size(include=_variant_in("flux-pro-v1-redux", "flux-pro-v1_1-redux")),
            ParamSpec("aspect_ratio", "str", "16:9", options=ASPECT_RATIOS, include=_variant_in("flux-pro-v1_1-ultra-redux")),
            ParamSpec(
                "num_inference_steps", "int", 28, min=1, max=50,
                include=_variant_in("flux-pro-v1-redux", "flux-pro-v1_1-redux"),
            ),
            ParamSpec(
                "guidance_scale", "float", 3.5, min=1.5, max=20,
                include=_variant_in("flux-pro-v1-redux", "flux-pro-v1_1-redux"),
            ),
            _output_format(),
            _sync_mode(),
            _safety_tolerance(),
            ParamSpec("enable_safety_checker", "bool", True, include=_variant_in("flux-pro-v1_1-ultra-redux")),
            ParamSpec("raw", "bool", False, include=_variant_in("flux-pro-v1_1-ultra-redux")),
            ParamSpec(
                "image_prompt_strength", "float", 0.1, min=0, max=1,
                include=_variant_in("flux-pro-v1_1-ultra-redux"),
            ),
            ParamSpec("enhance_prompt", "bool", False),
            _seed(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_variant_images(FLUX_PRO_REDUX_BASE_MS, 16000, 120000, sync=1.2),
        queue_message=_flux_pro_queue_message,
        finalizing_message="Finalizing images...",
        preparing_message="Preparing input image...",
        error_message="Failed to generate Flux Pro redux images",
    ),
)


# =============================================================================
# Flux-1 Krea
# =============================================================================

register(
    NodeSpec(
        uid="fal-flux1-krea-image-to-image",
        name="Flux-1 Krea Image to Image",
        category="Image Editing",
        endpoint="fal-ai/flux-1/krea/image-to-image",
        inputs=[_prompt(), _image()],
        params=[
            _num_images(),
            ParamSpec("strength", "float", 0.95, min=0.01, max=1),
            ParamSpec("num_inference_steps", "int", 40, min=10, max=50),
            ParamSpec("guidance_scale", "float", 4.5, min=1, max=20),
            _seed(),
            _output_format(),
            _acceleration(),
            _sync_mode(),
            _safety_checker(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.step_scaled(28000, 40, 18000, 150000),
        queue_message="Waiting for Flux-1 Krea image-to-image...",
        finalizing_message="Finalizing images...",
    ),
    NodeSpec(
        uid="fal-flux1-krea-redux",
        name="Flux-1 Krea Redux",
        category="Image Generation",
        endpoint="fal-ai/flux-1/krea/redux",
        inputs=[_image(), _prompt(required=False)],
        params=[
            _num_images(),
            _image_size(trailing=("custom",)),
            *_custom_dims(),
            ParamSpec("num_inference_steps", "int", 28, min=1, max=50),
            ParamSpec("guidance_scale", "float", 4.5, min=1, max=20),
            _seed(),
            _output_format(),
            _acceleration(),
            _sync_mode(),
            _safety_checker(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.step_scaled(26000, 28, 16000, 150000),
        queue_message="Waiting for Flux-1 Krea Redux...",
        finalizing_message="Finalizing images...",
        build_payload=_custom_size(),
    ),
)


# =============================================================================
# Flux Kontext
# =============================================================================

KONTEXT_T2I_ENDPOINTS = {
    "max": "fal-ai/flux-pro/kontext/max/text-to-image",
    "pro": "fal-ai/flux-pro/kontext/text-to-image",
}
KONTEXT_MULTI_ENDPOINTS = {
    "max": "fal-ai/flux-pro/kontext/max/multi",
    "pro": "fal-ai/flux-pro/kontext/multi",
}


def _kontext_params() -> List[ParamSpec]:
    return [
        ParamSpec("model_version", "str", "max", options=["pro", "max"], send=False),
        ParamSpec("guidance_scale", "float", 3.5, min=1, max=20),
        _num_images(),
        _output_format(),
        _safety_tolerance(),
        ParamSpec("aspect_ratio", "str", "1:1", options=ASPECT_RATIOS),
        _sync_mode(),
        ParamSpec("enhance_prompt", "bool", False),
        _seed(),
    ]


register(
    NodeSpec(
        uid="fal-flux-kontext-text-to-image",
        name="Flux Kontext Text to Image",
        category="Image Generation",
        endpoint=VariantEndpoint("model_version", KONTEXT_T2I_ENDPOINTS),
        inputs=[_prompt()],
        params=_kontext_params(),
        outputs=[
            OutputSpec("image", "image", source="images", many=True, required=True),
            OutputSpec("seed", "value"),
        ],
        expected_ms=estimates.per_variant_images(
            {"max": 34000, "pro": 24000}, 18000, 120000, sync=1.2, variant_param="model_version"
        ),
        finalizing_message="Finalizing images...",
    ),
    NodeSpec(
        uid="fal-flux-kontext-multi",
        name="Flux Kontext Multi-Image Edit",
        category="Image Editing",
        description="Edit using up to four reference images",
        endpoint=VariantEndpoint("model_version", KONTEXT_MULTI_ENDPOINTS),
        inputs=[_prompt(), *_image_group()],
        groups=[GroupSpec("images", "image_urls", message="At least one reference image is required")],
        params=_kontext_params(),
        outputs=[
            OutputSpec("image", "image", source="images", many=True, required=True),
            OutputSpec("seed", "value"),
        ],
        expected_ms=estimates.kontext_multi({"max": 42000, "pro": 32000}, 20000, 150000),
        finalizing_message="Finalizing images...",
        preparing_message="Preparing reference images...",
    ),
)


# =============================================================================
# Flux SRPO
# =============================================================================

SRPO_T2I_ENDPOINTS = {"flux-1": "fal-ai/flux-1/srpo", "classic": "fal-ai/flux/srpo"}
SRPO_I2I_ENDPOINTS = {
    "flux-1": "fal-ai/flux-1/srpo/image-to-image",
    "classic": "fal-ai/flux/srpo/image-to-image",
}


def _srpo_common() -> List[ParamSpec]:
    return [
        ParamSpec("guidance_scale", "float", 4.5, min=1, max=20),
        _num_images(),
        _seed(),
        _output_format(),
        _acceleration(default="none"),
        _safety_checker(),
        _sync_mode(),
    ]


register(
    NodeSpec(
        uid="fal-flux-srpo-text-to-image",
        name="Flux SRPO Text to Image",
        category="Image Generation",
        endpoint=VariantEndpoint("model_variant", SRPO_T2I_ENDPOINTS),
        inputs=[_prompt()],
        params=[
            ParamSpec("model_variant", "str", "flux-1", options=list(SRPO_T2I_ENDPOINTS), send=False),
            _image_size(trailing=("custom",)),
            *_custom_dims(),
            ParamSpec("num_inference_steps", "int", 28, min=1, max=50),
            *_srpo_common(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_step(650, 18000, 180000),
        finalizing_message="Finalizing images...",
        build_payload=_custom_size(),
    ),
    NodeSpec(
        uid="fal-flux-srpo-image-to-image",
        name="Flux SRPO Image to Image",
        category="Image Editing",
        endpoint=VariantEndpoint("model_variant", SRPO_I2I_ENDPOINTS),
        inputs=[_prompt(), _image()],
        params=[
            ParamSpec("model_variant", "str", "flux-1", options=list(SRPO_I2I_ENDPOINTS), send=False),
            ParamSpec("strength", "float", 0.95, min=0.01, max=1),
            ParamSpec("num_inference_steps", "int", 40, min=10, max=50),
            *_srpo_common(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_step(620, 20000, 180000),
        finalizing_message="Finalizing images...",
    ),
)


# =============================================================================
# Gemini
# =============================================================================

register(
    NodeSpec(
        uid="fal-ai-gemini-3-pro-image-preview-edit",
        name="Gemini 3 Pro Preview Edit",
        category="Image Editing",
        endpoint="fal-ai/gemini-3-pro-image-preview/edit",
        inputs=[_prompt(), *_image_group()],
        groups=[GroupSpec("images", "image_urls", message="At least one image is required")],
        params=[
            _output_format(("png", "jpeg", "webp"), "png"),
            ParamSpec("resolution", "str", "1K", options=["1K", "2K", "4K"]),
            ParamSpec("aspect_ratio", "str", "auto", options=["auto"] + GEMINI_ASPECT_RATIOS),
            ParamSpec("limit_generations", "bool", False),
            ParamSpec("enable_web_search", "bool", False),
        ],
        outputs=[
            OutputSpec("images", "image", many=True, required=True),
            OutputSpec("description", "value"),
        ],
        expected_ms=estimates.per_input(5000, 10000),
        queue_message="Waiting for Gemini Edit...",
        finalizing_message="Finalizing images...",
        error_message="Failed to generate images with Gemini 3 Pro Edit",
    ),
    NodeSpec(
        uid="gemini-flash-edit-multi",
        name="Gemini Flash Edit Multi",
        category="Image Editing",
        endpoint="fal-ai/gemini-flash-edit/multi",
        inputs=[_prompt(), *_image_group()],
        groups=[GroupSpec("images", "input_image_urls")],
        outputs=[
            OutputSpec("edited_image", "image", source="image", required=True),
            OutputSpec("description", "value"),
        ],
        expected_ms=fixed(25000),
        preparing_message="Processing input images...",
        upload_progress=lambda index, total: (index + 1) * 20,
        queue_floor=30,
    ),
)


# =============================================================================
# Hunyuan3D
# =============================================================================

register(
    NodeSpec(
        uid="hunyuan3d-image-to-3d",
        name="Hunyuan3D Image to 3D",
        category="3D",
        endpoint="fal-ai/hunyuan3d/v2",
        inputs=[_image(payload_key="input_image_url")],
        params=[
            ParamSpec("num_inference_steps", "int", 50, min=1, max=200),
            ParamSpec("guidance_scale", "float", 7.5, min=0.1, max=20),
            ParamSpec("octree_resolution", "int", 256, options=[128, 256, 512]),
            ParamSpec("textured_mesh", "bool", False),
            _seed(),
        ],
        outputs=[
            OutputSpec(
                "model_mesh",
                "mesh",
                required=True,
                filename=lambda params: "textured_mesh.glb" if params.get("textured_mesh") else "white_mesh.glb",
            ),
        ],
        expected_ms=fixed(90000),
        preparing_message="Preparing input image...",
    ),
    NodeSpec(
        uid="hunyuan3d-v21-image-to-3d",
        name="Hunyuan3D v2.1 Image to 3D",
        category="3D",
        endpoint="fal-ai/hunyuan3d-v21",
        inputs=[_image(payload_key="input_image_url")],
        params=[
            ParamSpec("num_inference_steps", "int", 50, min=1, max=50),
            ParamSpec("guidance_scale", "float", 7.5, min=0, max=20),
            ParamSpec("octree_resolution", "int", 256, min=1, max=1024),
            ParamSpec("textured_mesh", "bool", False),
            _seed(),
        ],
        outputs=[
            OutputSpec("model_glb", "mesh", required=True, filename="model.glb"),
            OutputSpec("model_glb_pbr", "mesh", filename="model.glb"),
            OutputSpec("seed", "value"),
        ],
        expected_ms=fixed(90000),
        preparing_message="Preparing input image...",
    ),
)


# =============================================================================
# Kling
# =============================================================================

register(
    NodeSpec(
        uid="kling-image-to-video",
        name="Kling Image to Video",
        category="Video Generation",
        endpoint="fal-ai/kling-video/v2.1/master/image-to-video",
        inputs=[
            _prompt(),
            InputSpec("negative_prompt", "text", payload_key="negative_prompt", default="blur, distort, and low quality"),
            _image(),
        ],
        params=[
            ParamSpec("duration", "str", "5", options=["5", "10"]),
            ParamSpec("cfg_scale", "float", 0.5, min=0.1, max=2.0),
        ],
        outputs=_video_output(),
        expected_ms=estimates.by_duration({"10": 90000}, 60000),
        preparing_message="Starting video generation...",
    ),
)


# =============================================================================
# Moondream 2
# =============================================================================


def _join_objects(payload, params, run):
    raw = run.inputs.get("object")
    names = raw if isinstance(raw, (list, tuple)) else [raw]
    payload["object"] = ", ".join(n.strip() for n in names if isinstance(n, str) and n.strip())
    return payload


register(
    NodeSpec(
        uid="fal-moondream2-describe",
        name="Moondream 2 Describe",
        category="Vision",
        endpoint="fal-ai/moondream2",
        inputs=[_image()],
        outputs=[OutputSpec("description", "value", source="output", required=True)],
        expected_ms=fixed(12000),
        finalizing_message="Finalizing description...",
        preparing_message="Preparing image for analysis...",
    ),
    NodeSpec(
        uid="fal-moondream2-visual-query",
        name="Moondream 2 Visual Query",
        category="Vision",
        endpoint="fal-ai/moondream2/visual-query",
        inputs=[_prompt(), _image()],
        outputs=[OutputSpec("answer", "value", source="output", required=True)],
        expected_ms=fixed(15000),
        finalizing_message="Finalizing answer...",
        preparing_message="Preparing image and question...",
    ),
    NodeSpec(
        uid="fal-moondream2-object-detection",
        name="Moondream 2 Object Detection",
        category="Vision",
        endpoint="fal-ai/moondream2/object-detection",
        inputs=[_image(), InputSpec("object", "text", required=True)],
        outputs=[
            OutputSpec("image", "image", required=True),
            OutputSpec("objects", "json"),
        ],
        expected_ms=fixed(20000),
        finalizing_message="Finalizing detections...",
        preparing_message="Preparing image for object detection...",
        build_payload=_join_objects,
        error_message="Failed to run object detection",
    ),
)


# =============================================================================
# Nano Banana
# =============================================================================

NANO_UPLOAD_RAMP = _upload_ramp(10, 5, 40)


def _nano_edit(uid: str, name: str, endpoint: str, extra: List[ParamSpec], aspect_default: str) -> NodeSpec:
    aspect_options = (["auto"] if aspect_default == "auto" else []) + GEMINI_ASPECT_RATIOS
    return NodeSpec(
        uid=uid,
        name=name,
        category="Image Editing",
        endpoint=endpoint,
        inputs=[_prompt(), *_image_group()],
        groups=[GroupSpec("images", "image_urls", message="At least one image is required")],
        params=[
            _num_images(),
            *extra,
            _output_format(),
            _sync_mode(),
            ParamSpec("aspect_ratio", "str", aspect_default, options=aspect_options),
        ],
        outputs=[
            OutputSpec("images", "image", many=True, required=True),
            OutputSpec("description", "value"),
        ],
        expected_ms=estimates.per_image(9000, 20000, 180000),
        finalizing_message="Finalizing edits...",
        upload_progress=NANO_UPLOAD_RAMP,
        queue_floor=40,
    )


register(
    _nano_edit("fal-nano-banana-edit", "Nano Banana Edit", "fal-ai/nano-banana/edit", [], "1:1"),
    _nano_edit(
        "fal-nano-banana-pro-edit",
        "Nano Banana Pro Edit",
        "fal-ai/nano-banana-pro/edit",
        [ParamSpec("resolution", "str", "1K", options=["1K", "2K", "4K"])],
        "auto",
    ),
    NodeSpec(
        uid="fal-nano-banana-pro-text-to-image",
        name="Nano Banana Pro Text to Image",
        category="Image Generation",
        endpoint="fal-ai/nano-banana-pro",
        inputs=[_prompt()],
        params=[
            _num_images(),
            ParamSpec("resolution", "str", "1K", options=["1K", "2K", "4K"]),
            _output_format(),
            _sync_mode(),
            ParamSpec("aspect_ratio", "str", "1:1", options=GEMINI_ASPECT_RATIOS),
        ],
        outputs=[
            OutputSpec("images", "image", many=True, required=True),
            OutputSpec("description", "value"),
        ],
        expected_ms=estimates.per_image(8000, 15000, 120000),
        finalizing_message="Finalizing images...",
        preparing_message="Submitting request to Fal...",
    ),
)


# =============================================================================
# Qwen
# =============================================================================

register(
    NodeSpec(
        uid="fal-ai-qwen-image-edit-plus",
        name="Qwen Image Edit Plus",
        category="Image Editing",
        endpoint="fal-ai/qwen-image-edit-plus",
        inputs=[
            _prompt(),
            *_image_group(),
            InputSpec("negative_prompt", "text", payload_key="negative_prompt"),
        ],
        groups=[GroupSpec("images", "image_urls", message="At least one image is required")],
        params=[
            ParamSpec("num_inference_steps", "int", 50, min=2, max=100),
            _seed(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.per_input(10000, 5000),
        queue_message="Waiting for Qwen Image Edit Plus...",
        finalizing_message="Finalizing images...",
        error_message="Failed to generate images with Qwen Image Edit Plus",
    ),
    NodeSpec(
        uid="fal-ai-qwen-image-layered",
        name="Qwen Image Layered",
        category="Image Editing",
        description="Decompose an image into layers",
        endpoint="fal-ai/qwen-image-layered",
        inputs=[
            _image(),
            _prompt(required=False),
            InputSpec("negative_prompt", "text", payload_key="negative_prompt"),
        ],
        params=[
            ParamSpec("num_inference_steps", "int", 28, min=1, max=50),
            ParamSpec("guidance_scale", "float", 5, min=1, max=20),
            _seed(),
        ],
        outputs=_images_output(),
        expected_ms=fixed(15000),
        queue_message="Waiting for Qwen Image Layered...",
        finalizing_message="Finalizing images...",
        error_message="Failed to generate images with Qwen Image Layered",
    ),
)


# =============================================================================
# Qwen LoRA Gallery
# =============================================================================

GALLERY_ENDPOINT = "fal-ai/qwen-image-edit-plus-lora-gallery"


def _gallery_size(payload, params, run):
    # "auto" sends the explicit input-size fields instead of a preset.
    if params["image_size"] == "auto":
        payload["image_size"] = {"width": params["image_width"], "height": params["image_height"]}
    return payload


def _gallery_params(lora_scale: float, sync: bool = True) -> List[ParamSpec]:
    params = [
        _num_images(),
        ParamSpec("image_size", "str", "auto", options=["auto"] + IMAGE_SIZE_PRESETS),
        ParamSpec("image_width", "int", 512, min=1, max=14142, send=False),
        ParamSpec("image_height", "int", 512, min=1, max=14142, send=False),
        ParamSpec("guidance_scale", "float", 1, min=0, max=20),
        ParamSpec("num_inference_steps", "int", 6, min=2, max=50),
        _acceleration(options=["none", "regular"]),
        ParamSpec("negative_prompt", "str", " "),
        ParamSpec("lora_scale", "float", lora_scale, min=0, max=4),
        _output_format(("png", "jpeg", "webp"), "png"),
        _safety_checker(),
    ]
    if sync:
        params.append(_sync_mode())
    params.append(_seed())
    return params


register(
    NodeSpec(
        uid="fal-qwen-integrate-product",
        name="Qwen Integrate Product",
        category="Image Editing",
        endpoint=f"{GALLERY_ENDPOINT}/integrate-product",
        inputs=[_prompt(), InputSpec("image", "image", required=True, group="images")],
        groups=[GroupSpec("images", "image_urls")],
        params=_gallery_params(1),
        outputs=[OutputSpec("images", "image", many=True, required=True), OutputSpec("seed", "value")],
        expected_ms=estimates.per_image(9000, 20000, 180000),
        finalizing_message="Finalizing product integration...",
        build_payload=_gallery_size,
    ),
    NodeSpec(
        uid="fal-qwen-multiple-angles",
        name="Qwen Multiple Angles",
        category="Image Editing",
        description="Re-render an image from a different camera angle",
        endpoint=f"{GALLERY_ENDPOINT}/multiple-angles",
        inputs=[InputSpec("image", "image", required=True, group="images")],
        groups=[GroupSpec("images", "image_urls")],
        params=[
            ParamSpec("vertical_angle", "float", 0, min=-1, max=1),
            ParamSpec("rotate_right_left", "float", 0, min=-90, max=90),
            ParamSpec("move_forward", "float", 0, min=0, max=10),
            ParamSpec("wide_angle_lens", "bool", False),
            *_gallery_params(1.25, sync=False),
        ],
        outputs=[OutputSpec("images", "image", many=True, required=True), OutputSpec("seed", "value")],
        expected_ms=estimates.per_image(9000, 20000, 180000),
        finalizing_message="Finalizing angle adjustment...",
        build_payload=_gallery_size,
    ),
)


# =============================================================================
# SAM 3
# =============================================================================


def _sam3_image_payload(payload, params, run):
    payload["return_multiple_masks"] = bool(params["return_multiple_masks"] or params["aggregate_masks"])
    payload["output_format"] = "png"
    return payload


register(
    NodeSpec(
        uid="fal-ai/sam-3/image",
        name="SAM 3 Image",
        category="Segmentation",
        endpoint="fal-ai/sam-3/image",
        inputs=[_prompt(required=False, default="wheel"), _image()],
        params=[
            ParamSpec("apply_mask", "bool", True),
            ParamSpec("return_multiple_masks", "bool", False, description="Upload and return multiple generated masks"),
            ParamSpec(
                "aggregate_masks",
                "bool",
                False,
                send=False,
                description="Merge all masks into one and return as the main image",
            ),
            ParamSpec("max_masks", "int", 3, min=1, max=32),
        ],
        outputs=[
            OutputSpec("image", "image", deferred=True, description="The segmented image or aggregated mask"),
            OutputSpec("masks", "image", many=True, description="All generated segmentation masks"),
        ],
        expected_ms=fixed(10000),
        finalizing_message="Finalizing segmentation...",
        build_payload=_sam3_image_payload,
        postprocess=sam3_image_outputs,
        error_message="Failed to process image",
    ),
    NodeSpec(
        uid="fal-ai/sam-3/image/embed",
        name="SAM 3 Image Embed",
        category="Segmentation",
        endpoint="fal-ai/sam-3/image/embed",
        inputs=[_image()],
        outputs=[OutputSpec("embedding_b64", "value", required=True)],
        expected_ms=fixed(5000),
        finalizing_message="Generating embedding...",
    ),
    NodeSpec(
        uid="fal-ai/sam-3/3d-objects",
        name="SAM 3 3D Objects",
        category="3D",
        endpoint="fal-ai/sam-3/3d-objects",
        inputs=[_prompt(required=False, default="car"), _image()],
        params=[ParamSpec("export_textured_glb", "bool", False), _seed()],
        outputs=[
            OutputSpec("model_glb", "url"),
            OutputSpec("gaussian_splat", "url"),
            OutputSpec("artifacts_zip", "url"),
        ],
        expected_ms=fixed(60000),
        finalizing_message="Reconstructing 3D objects...",
        postprocess=require_any_output("model_glb", "gaussian_splat"),
    ),
    NodeSpec(
        uid="fal-ai/sam-3/video",
        name="SAM 3 Video",
        category="Segmentation",
        endpoint="fal-ai/sam-3/video",
        inputs=[
            _prompt(required=False, default=""),
            InputSpec("video", "video", required=True, payload_key="video_url", content_type="video/mp4"),
        ],
        params=[
            ParamSpec("detection_threshold", "float", 0.5, min=0.1, max=1),
            ParamSpec("apply_mask", "bool", True),
        ],
        outputs=[
            OutputSpec("video", "video", required=True),
            OutputSpec("boundingbox_frames_zip", "url"),
        ],
        expected_ms=fixed(30000),
        finalizing_message="Finalizing video segmentation...",
    ),
)


# =============================================================================
# Seedance
# =============================================================================

SEEDANCE_BASE = "fal-ai/bytedance/seedance/v1"


def _seedance_endpoint(mode: str) -> VariantEndpoint:
    return VariantEndpoint(
        "model_variant",
        {variant: f"{SEEDANCE_BASE}/{variant}/{mode}" for variant in ("lite", "pro")},
    )


def _seedance_validate(uid: str):
    def validate(params, values):
        if params.get("model_variant") == "pro" and params.get("aspect_ratio") == "9:21":
            return InvalidParameterError(
                node_uid=uid,
                param_name="aspect_ratio",
                message="Aspect ratio 9:21 is only supported by the Lite variant",
            )
        return None

    return validate


def _seedance_params(aspects: List[str], aspect_default: str) -> List[ParamSpec]:
    return [
        ParamSpec("model_variant", "str", "lite", options=["lite", "pro"], send=False),
        ParamSpec("aspect_ratio", "str", aspect_default, options=aspects),
        ParamSpec(
            "resolution",
            "str",
            "720p",
            options=["480p", "720p", "1080p"],
            default_for=lambda params: "1080p" if params.get("model_variant") == "pro" else "720p",
        ),
        ParamSpec("duration", "str", "5", options=SEEDANCE_DURATIONS, description="Seconds"),
        ParamSpec("camera_fixed", "bool", False),
        _safety_checker(),
        _seed(),
    ]


register(
    NodeSpec(
        uid="fal-seedance-text-to-video",
        name="Seedance Text to Video",
        category="Video Generation",
        endpoint=_seedance_endpoint("text-to-video"),
        inputs=[_prompt()],
        params=_seedance_params(SEEDANCE_ASPECT_RATIOS, "16:9"),
        outputs=_video_output(with_seed=True),
        expected_ms=estimates.seedance(),
        finalizing_message="Finalizing video...",
        validate=_seedance_validate("fal-seedance-text-to-video"),
    ),
    NodeSpec(
        uid="fal-seedance-image-to-video",
        name="Seedance Image to Video",
        category="Video Generation",
        endpoint=_seedance_endpoint("image-to-video"),
        inputs=[
            _prompt(),
            _image(),
            _image("end_image", "end_image_url", required=False),
        ],
        params=_seedance_params(["auto"] + SEEDANCE_ASPECT_RATIOS, "auto"),
        outputs=_video_output(with_seed=True),
        expected_ms=estimates.seedance(),
        finalizing_message="Finalizing video...",
        preparing_message="Preparing input images...",
        validate=_seedance_validate("fal-seedance-image-to-video"),
    ),
)


# =============================================================================
# Seedream v4
# =============================================================================

SEEDREAM_MIN_SIDE = 1920
SEEDREAM_MAX_SIDE = 4096
SEEDREAM_MIN_PIXELS = 2560 * 1440
SEEDREAM_MAX_PIXELS = 4096 * 4096


def _seedream_images(payload, params, run):
    payload["max_images"] = max(params["num_images"], params["max_images"])
    return payload


def _seedream_t2i_size(payload, params, run):
    payload["image_size"] = {"width": params["image_width"], "height": params["image_height"]}
    return payload


def _edit_dims(values: Dict[str, Any]):
    width = int(to_number(values.get("width"), 1280, integer=True))
    height = int(to_number(values.get("height"), 1280, integer=True))
    return width, height


def _seedream_edit_size(payload, params, run):
    width, height = _edit_dims(run.values)
    payload["image_size"] = {"width": width, "height": height}
    return payload


def _seedream_validate(params, values):
    width, height = _edit_dims(values)
    sides_ok = all(SEEDREAM_MIN_SIDE <= side <= SEEDREAM_MAX_SIDE for side in (width, height))
    pixels_ok = SEEDREAM_MIN_PIXELS <= width * height <= SEEDREAM_MAX_PIXELS
    if sides_ok or pixels_ok:
        return None
    return InvalidParameterError(
        node_uid="fal-seedream-edit",
        param_name="image_size",
        message=(
            f"Invalid image size {width}x{height}: each side must be between {SEEDREAM_MIN_SIDE} and "
            f"{SEEDREAM_MAX_SIDE}, or total pixels between {SEEDREAM_MIN_PIXELS} and {SEEDREAM_MAX_PIXELS}"
        ),
    )


def _seedream_params() -> List[ParamSpec]:
    return [
        _num_images(6),
        ParamSpec("max_images", "int", 1, min=1, max=6, description="Upper bound on images per generation"),
        _seed(),
        _safety_checker(),
        _sync_mode(),
    ]


register(
    NodeSpec(
        uid="fal-seedream-text-to-image",
        name="Seedream v4 Text to Image",
        category="Image Generation",
        endpoint="fal-ai/bytedance/seedream/v4/text-to-image",
        inputs=[_prompt()],
        params=[
            ParamSpec("image_width", "int", 1280, min=1024, max=4096, send=False),
            ParamSpec("image_height", "int", 1280, min=1024, max=4096, send=False),
            *_seedream_params(),
        ],
        outputs=[OutputSpec("images", "image", many=True, required=True), OutputSpec("seed", "value")],
        expected_ms=estimates.seedream(),
        build_payload=_chain(_seedream_t2i_size, _seedream_images),
    ),
    NodeSpec(
        uid="fal-seedream-edit",
        name="Seedream v4 Edit",
        category="Image Editing",
        endpoint="fal-ai/bytedance/seedream/v4/edit",
        inputs=[
            _prompt(),
            *_image_group(),
            InputSpec("width", "number", default=1280),
            InputSpec("height", "number", default=1280),
        ],
        groups=[GroupSpec("images", "image_urls")],
        params=_seedream_params(),
        outputs=[OutputSpec("images", "image", many=True, required=True), OutputSpec("seed", "value")],
        expected_ms=estimates.seedream(width_key="width", height_key="height"),
        upload_progress=_upload_ramp(10, 5, 40),
        queue_floor=40,
        validate=_seedream_validate,
        build_payload=_chain(_seedream_edit_size, _seedream_images),
    ),
)


# =============================================================================
# SeedVR Upscale
# =============================================================================


def _upscale_params() -> List[ParamSpec]:
    return [
        ParamSpec("upscale_mode", "str", "factor", options=["factor", "target"]),
        ParamSpec(
            "upscale_factor", "float", 2, min=1, max=10,
            include=lambda params: params.get("upscale_mode") == "factor",
        ),
        ParamSpec(
            "target_resolution", "str", "1080p", options=UPSCALE_TARGETS,
            include=lambda params: params.get("upscale_mode") != "factor",
        ),
        ParamSpec("noise_scale", "float", 0.1, min=0, max=1),
    ]


register(
    NodeSpec(
        uid="fal-seedvr-upscale-image",
        name="SeedVR Upscale Image",
        category="Upscaling",
        endpoint="fal-ai/seedvr/upscale/image",
        inputs=[_image()],
        params=[
            *_upscale_params(),
            _output_format(("jpg", "png", "webp"), "jpg"),
            _seed(),
        ],
        outputs=[OutputSpec("image", "image", required=True), OutputSpec("seed", "value")],
        expected_ms=fixed(10000),
        finalizing_message="Finalizing upscale...",
    ),
    NodeSpec(
        uid="fal-seedvr-upscale-video",
        name="SeedVR Upscale Video",
        category="Upscaling",
        endpoint="fal-ai/seedvr/upscale/video",
        inputs=[InputSpec("video", "video", required=True, payload_key="video_url", content_type="video/mp4")],
        params=[
            *_upscale_params(),
            ParamSpec(
                "output_format",
                "str",
                "X264 (.mp4)",
                options=["X264 (.mp4)", "VP9 (.webm)", "PRORES4444 (.mov)", "GIF (.gif)"],
            ),
            ParamSpec("output_quality", "str", "high", options=["low", "medium", "high", "maximum"]),
            ParamSpec("output_write_mode", "str", "balanced", options=["fast", "balanced", "small"]),
            _seed(),
        ],
        outputs=_video_output(with_seed=True),
        expected_ms=fixed(30000),
        finalizing_message="Finalizing upscale...",
    ),
)


# =============================================================================
# Sora 2
# =============================================================================


def _sora_validate(uid: str):
    def validate(params, values):
        if params.get("resolution") == "1080p" and params.get("model_variant") != "pro":
            return InvalidParameterError(
                node_uid=uid,
                param_name="resolution",
                message="1080p resolution is only available in Pro variant",
                allowed=["720p"],
            )
        return None

    return validate


def _sora_params(resolutions: List[str], aspects: List[str]) -> List[ParamSpec]:
    return [
        ParamSpec("model_variant", "str", "standard", options=["standard", "pro"], send=False),
        ParamSpec("resolution", "str", resolutions[0], options=resolutions),
        ParamSpec("aspect_ratio", "str", aspects[0], options=aspects),
        ParamSpec("duration", "int", 4, options=[4, 8, 12], description="Seconds"),
        ParamSpec(
            "api_key",
            "str",
            "",
            optional=True,
            label="OpenAI API Key",
            description="Bill the generation to your own OpenAI key",
        ),
    ]


SORA_DURATION_MS = {"8": 120000, "12": 180000}

register(
    NodeSpec(
        uid="fal-sora-2-text-to-video",
        name="Sora 2 Text to Video",
        category="Video Generation",
        endpoint=VariantEndpoint(
            "model_variant",
            {"standard": "fal-ai/sora-2/text-to-video", "pro": "fal-ai/sora-2/text-to-video/pro"},
        ),
        inputs=[_prompt()],
        params=_sora_params(["720p", "1080p"], ["16:9", "9:16"]),
        outputs=_video_output(),
        expected_ms=estimates.by_duration(SORA_DURATION_MS, 90000),
        finalizing_message="Finalizing video...",
        validate=_sora_validate("fal-sora-2-text-to-video"),
    ),
    NodeSpec(
        uid="fal-sora-2-image-to-video",
        name="Sora 2 Image to Video",
        category="Video Generation",
        endpoint=VariantEndpoint(
            "model_variant",
            {"standard": "fal-ai/sora-2/image-to-video", "pro": "fal-ai/sora-2/image-to-video/pro"},
        ),
        inputs=[_prompt(), _image()],
        params=_sora_params(["auto", "720p", "1080p"], ["auto", "16:9", "9:16"]),
        outputs=_video_output(),
        expected_ms=estimates.by_duration(SORA_DURATION_MS, 90000),
        finalizing_message="Finalizing video...",
        validate=_sora_validate("fal-sora-2-image-to-video"),
    ),
)


# =============================================================================
# Veo 3 / 3.1
# =============================================================================

VEO_RESOLUTIONS = ["720p", "1080p"]


def _veo_params(aspects: List[str], aspect_default: str, durations=("8s",), variants: bool = True) -> List[ParamSpec]:
    params = []
    if variants:
        params.append(ParamSpec("model_variant", "str", "standard", options=["standard", "fast"], send=False))
    if aspects:
        params.append(ParamSpec("aspect_ratio", "str", aspect_default, options=aspects))
    params += [
        ParamSpec("resolution", "str", "720p", options=VEO_RESOLUTIONS),
        ParamSpec("duration", "str", "8s", options=list(durations)),
        ParamSpec("generate_audio", "bool", True),
    ]
    return params


def _veo_endpoint(standard: str, fast: str) -> VariantEndpoint:
    return VariantEndpoint("model_variant", {"standard": standard, "fast": fast})


register(
    NodeSpec(
        uid="fal-veo3-text-to-video",
        name="Veo 3 Text to Video",
        category="Video Generation",
        endpoint=_veo_endpoint("fal-ai/veo3", "fal-ai/veo3/fast"),
        inputs=[_prompt(), InputSpec("negative_prompt", "text", payload_key="negative_prompt")],
        params=[
            *_veo_params(["16:9", "9:16", "1:1"], "16:9", durations=("4s", "6s", "8s")),
            ParamSpec("enhance_prompt", "bool", True),
            ParamSpec("auto_fix", "bool", True),
            _seed(),
        ],
        outputs=_video_output(with_seed=True),
        expected_ms=estimates.veo(),
        finalizing_message="Finalizing video...",
    ),
    NodeSpec(
        uid="fal-veo3-image-to-video",
        name="Veo 3 Image to Video",
        category="Video Generation",
        endpoint=_veo_endpoint("fal-ai/veo3/image-to-video", "fal-ai/veo3/fast/image-to-video"),
        inputs=[_prompt(), _image()],
        params=_veo_params(["auto", "16:9", "9:16"], "auto"),
        outputs=_video_output(),
        expected_ms=estimates.veo(),
        finalizing_message="Finalizing video...",
        progress_message=lambda n: f"Animating frame {n}...",
        preparing_message="Preparing image for Veo 3 animation...",
        error_message="Failed to animate image",
    ),
    NodeSpec(
        uid="fal-veo31-image-to-video",
        name="Veo 3.1 Image to Video",
        category="Video Generation",
        endpoint=_veo_endpoint("fal-ai/veo3.1/image-to-video", "fal-ai/veo3.1/fast/image-to-video"),
        inputs=[_prompt(), _image()],
        params=_veo_params(["16:9", "9:16"], "16:9"),
        outputs=_video_output(),
        expected_ms=estimates.veo(),
        finalizing_message="Finalizing video...",
        progress_message=lambda n: f"Animating frame {n}...",
    ),
    NodeSpec(
        uid="fal-veo31-first-last-frame-to-video",
        name="Veo 3.1 First & Last Frame to Video",
        category="Video Generation",
        endpoint=_veo_endpoint(
            "fal-ai/veo3.1/first-last-frame-to-video", "fal-ai/veo3.1/fast/first-last-frame-to-video"
        ),
        inputs=[
            _prompt(),
            _image("first_frame", "first_frame_url"),
            _image("last_frame", "last_frame_url"),
        ],
        params=_veo_params(["auto", "16:9", "9:16", "1:1"], "auto"),
        outputs=_video_output(),
        expected_ms=estimates.veo(),
        finalizing_message="Finalizing video...",
        progress_message=lambda n: f"Interpolating frame {n}...",
    ),
    NodeSpec(
        uid="fal-veo31-reference-to-video",
        name="Veo 3.1 Reference to Video",
        category="Video Generation",
        endpoint="fal-ai/veo3.1/reference-to-video",
        inputs=[_prompt(), *_image_group("reference_image")],
        groups=[GroupSpec("images", "image_urls", message="At least one reference image is required")],
        params=_veo_params([], "", variants=False),
        outputs=_video_output(),
        expected_ms=estimates.veo_reference(),
        finalizing_message="Finalizing video...",
        progress_message=lambda n: f"Refining reference alignment {n}...",
    ),
)


# =============================================================================
# Z-Image Turbo
# =============================================================================

LORA_SLOTS = (1, 2, 3)


def _z_image_common() -> List[ParamSpec]:
    return [
        _num_images(),
        ParamSpec("num_inference_steps", "int", 8, min=1, max=8),
        _seed(),
        _output_format(("png", "jpeg", "webp"), "png"),
        _acceleration(default="none"),
        _sync_mode(),
        _safety_checker(),
        ParamSpec("enable_prompt_expansion", "bool", False),
    ]


def _lora_payload(payload, params, run):
    loras = []
    for n in LORA_SLOTS:
        url = run.uploads.get(f"lora_{n}_path")
        if url:
            loras.append({"path": url, "scale": params[f"lora_{n}_scale"]})
    if loras:
        payload["loras"] = loras
    return payload


def _lora_input(n: int) -> InputSpec:
    return InputSpec(
        f"lora_{n}_path",
        "file",
        content_type="application/octet-stream",
        upload_name="lora.safetensors",
        url_passthrough=True,
        description="LoRA weights URL or asset URI",
    )


register(
    NodeSpec(
        uid="fal-z-image-turbo-image-to-image",
        name="Z-Image Turbo Image to Image",
        category="Image Editing",
        endpoint="fal-ai/z-image/turbo/image-to-image",
        inputs=[_prompt(), _image()],
        params=[
            ParamSpec("strength", "float", 0.6, min=0, max=1),
            _image_size("auto", leading=("auto",), trailing=("custom",)),
            *_custom_dims(),
            *_z_image_common(),
        ],
        outputs=_images_output(),
        expected_ms=estimates.z_image(),
        finalizing_message="Finalizing images...",
        build_payload=_custom_size(),
    ),
    NodeSpec(
        uid="fal-z-image-turbo-lora",
        name="Z-Image Turbo (LoRA)",
        category="Image Generation",
        endpoint="fal-ai/z-image/turbo/lora",
        inputs=[_prompt(), *[_lora_input(n) for n in LORA_SLOTS]],
        params=[
            _image_size(trailing=("custom",)),
            *_custom_dims(),
            *_z_image_common(),
            *[ParamSpec(f"lora_{n}_scale", "float", 1.0, min=0, max=4, send=False) for n in LORA_SLOTS],
        ],
        outputs=_images_output(),
        expected_ms=estimates.z_image(),
        finalizing_message="Finalizing images...",
        build_payload=_chain(_custom_size(), _lora_payload),
    ),
)

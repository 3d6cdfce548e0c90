# Copyright Dario Mylonopoulos
# SPDX-License-Identifier: MIT

import logging
from time import perf_counter_ns
from typing import Any, Optional, Tuple

import numpy as np
import wgpu

from .bridge import PendingSlot
from .config import RenderConfig
from .errors import RenderError
from .run_config import RunConfig

logger = logging.getLogger(__name__)


class UserSketch:
    """Draws a user shader: no vertex buffers, triangles * 3 vertices.

    Bind group 0 exposes the framebuffer size as vec2<f32> at binding 0 and
    the seconds since start as f32 at binding 1.
    """

    def __init__(self, slot: PendingSlot[RunConfig], config: Optional[RenderConfig] = None):
        self.slot = slot
        self.config = config if config is not None else RenderConfig()

        self.device: Any = None
        self.format: Any = None
        self.pipeline: Any = None
        self.run_config: Optional[RunConfig] = None

        self.dimensions = np.zeros(2, np.float32)
        self.time = np.zeros(1, np.float32)
        self.start_timestamp = perf_counter_ns()

    def init(self, device: Any, format: Any) -> None:
        self.device = device
        self.format = format

        self.dimensions_buffer = device.create_buffer(
            size=self.dimensions.nbytes,
            usage=wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST,
        )
        self.time_buffer = device.create_buffer(
            size=self.time.nbytes,
            usage=wgpu.BufferUsage.UNIFORM | wgpu.BufferUsage.COPY_DST,
        )

        visibility = wgpu.ShaderStage.VERTEX | wgpu.ShaderStage.FRAGMENT
        self.bind_group_layout = device.create_bind_group_layout(
            entries=[
                {"binding": 0, "visibility": visibility, "buffer": {"type": wgpu.BufferBindingType.uniform}},
                {"binding": 1, "visibility": visibility, "buffer": {"type": wgpu.BufferBindingType.uniform}},
            ]
        )
        self.bind_group = device.create_bind_group(
            layout=self.bind_group_layout,
            entries=[
                {"binding": 0, "resource": {"buffer": self.dimensions_buffer, "offset": 0, "size": self.dimensions.nbytes}},
                {"binding": 1, "resource": {"buffer": self.time_buffer, "offset": 0, "size": self.time.nbytes}},
            ],
        )
        self.pipeline_layout = device.create_pipeline_layout(bind_group_layouts=[self.bind_group_layout])
        self.start_timestamp = perf_counter_ns()

    def create_pipeline(self, config: RunConfig) -> Any:
        shader = self.device.create_shader_module(code=config.wgsl)
        return self.device.create_render_pipeline(
            layout=self.pipeline_layout,
            vertex={
                "module": shader,
                "entry_point": config.vertex_entry,
                "buffers": [],
            },
            primitive={
                "topology": wgpu.PrimitiveTopology.triangle_list,
                "cull_mode": wgpu.CullMode.none,
            },
            depth_stencil=None,
            multisample=None,
            fragment={
                "module": shader,
                "entry_point": config.fragment_entry,
                "targets": [{"format": self.format}],
            },
        )

    def refresh(self) -> bool:
        config = self.slot.take()
        if config is None:
            return False

        try:
            pipeline = self.create_pipeline(config)
        except wgpu.GPUError as e:
            if self.pipeline is None:
                raise
            # Keep drawing with the previous pipeline.
            logger.error("Shader pipeline creation failed: %s", e)
            return False

        self.pipeline = pipeline
        self.run_config = config
        logger.info(
            "Pipeline created: vertex=%s fragment=%s triangles=%d",
            config.vertex_entry,
            config.fragment_entry,
            config.triangles,
        )
        return True

    def update(self, texture: Any, size: Tuple[int, int]) -> None:
        self.refresh()

        self.dimensions[:] = size
        self.time[0] = (perf_counter_ns() - self.start_timestamp) * 1e-9
        self.device.queue.write_buffer(self.dimensions_buffer, 0, self.dimensions)
        self.device.queue.write_buffer(self.time_buffer, 0, self.time)

        encoder = self.device.create_command_encoder()
        render_pass = encoder.begin_render_pass(
            color_attachments=[
                {
                    "view": texture.create_view(),
                    "resolve_target": None,
                    "clear_value": self.config.clear_color,
                    "load_op": wgpu.LoadOp.clear,
                    "store_op": wgpu.StoreOp.store,
                }
            ],
        )
        if self.pipeline is not None and self.run_config is not None:
            render_pass.set_pipeline(self.pipeline)
            render_pass.set_bind_group(0, self.bind_group)
            render_pass.draw(self.run_config.triangles * 3, 1, 0, 0)
        render_pass.end()
        self.device.queue.submit([encoder.finish()])


def run_sketch(sketch: UserSketch, config: Optional[RenderConfig] = None) -> None:
    from rendercanvas.auto import RenderCanvas, loop

    config = config if config is not None else sketch.config

    adapter = wgpu.gpu.request_adapter_sync(power_preference=config.power_preference)
    if adapter is None:
        raise RenderError("Error: No GPU adapter available")
    device = adapter.request_device_sync()

    canvas = RenderCanvas(
        size=(config.width, config.height),
        title=config.title,
        update_mode="continuous",
        max_fps=config.max_fps,
        vsync=config.vsync,
    )
    context = canvas.get_context("wgpu")
    format = context.get_preferred_format(adapter)
    context.configure(device=device, format=format)

    sketch.init(device, format)
    # Initial pipeline, a broken shader fails before the window opens.
    try:
        sketch.refresh()
    except wgpu.GPUError as e:
        raise RenderError(f"Error: Failed to create shader pipeline\n{e}") from e

    def draw() -> None:
        width, height = canvas.get_physical_size()
        if width == 0 or height == 0:
            return
        sketch.update(context.get_current_texture(), (width, height))

    canvas.request_draw(draw)
    loop.run()

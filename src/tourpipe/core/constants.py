"""Constants for the tourpipe pipeline."""


# Stage identities, in execution order
STAGE_SPATIAL = "spatial"
STAGE_RENDER = "render"
STAGE_REASONING = "reasoning"
STAGE_COMPOSITE = "composite"

STAGE_ORDER = [STAGE_SPATIAL, STAGE_RENDER, STAGE_REASONING, STAGE_COMPOSITE]

STAGE_LABELS = {
    STAGE_SPATIAL: "3D Reconstruction",
    STAGE_RENDER: "Tour Rendering",
    STAGE_REASONING: "AI Annotation",
    STAGE_COMPOSITE: "Final Composite",
}

# Stage statuses
STAGE_PENDING = "pending"
STAGE_RUNNING = "running"
STAGE_DONE = "done"
STAGE_FAILED = "failed"

STAGE_STATUSES = [STAGE_PENDING, STAGE_RUNNING, STAGE_DONE, STAGE_FAILED]

# Overall project statuses
STATUS_CONFIGURED = "configured"
STATUS_DONE = "done"
STATUS_FAILED = "failed"

# Project status while a stage is running
STAGE_TO_STATUS = {
    STAGE_SPATIAL: "spatial",
    STAGE_RENDER: "rendering",
    STAGE_REASONING: "reasoning",
    STAGE_COMPOSITE: "compositing",
}

PROJECT_STATUSES = [
    STATUS_CONFIGURED,
    *STAGE_TO_STATUS.values(),
    STATUS_DONE,
    STATUS_FAILED,
]

QUANTIZATION_MODES = ["4bit", "8bit"]
CAMERA_TRAJECTORIES = ["orbit", "flythrough", "custom"]

# Files inside a project directory
PROJECT_FILE = "project.json"
SCENE_FILE = "scene.ply"
TOUR_FILE = "tour.mp4"
CONCAT_MANIFEST = "chunks.txt"
FINAL_FILE = "final.mp4"
CHUNK_CLIP_TEMPLATE = "chunk_{index}.mp4"
CHUNK_OUTPUT_TEMPLATE = "reasoned_{index}.mp4"

# Memory pressure thresholds (percent)
PRESSURE_HALVING_THRESHOLD = 80
MIN_CHUNK_FRAMES = 8
PRESSURE_WARNING = 50
PRESSURE_CRITICAL = 75

# Longest stderr tail kept on a StageProcessError
STDERR_TAIL_CHARS = 4000

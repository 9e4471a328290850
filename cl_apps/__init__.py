"""Example pipelines built on cl_runtime: matrix multiply and image rotation."""

from cl_apps.matmul import demo_inputs as demo_inputs
from cl_apps.matmul import run_matmul as run_matmul
from cl_apps.rotation import rotate_file as rotate_file
from cl_apps.rotation import run_rotation as run_rotation

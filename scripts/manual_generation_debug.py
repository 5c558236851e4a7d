"""One-off script for debugging a real generation call."""

import sys
from pathlib import Path

from config.settings import load_config
from modules.pipelines.task_types import parse_task_type
from modules.services.credit_service import CreditService, InMemoryAccountStore
from modules.services.history_service import BatchHistory
from modules.services.storage_service import StorageService
from modules.services.workflow import StudioWorkflow
from modules.pipelines.generation import RenderService
from modules.utils.image_utils import read_uploads
from modules.utils.logging import setup_logging


def main() -> None:
    # 1. Real configuration and services; credits are kept in memory
    config = load_config()
    setup_logging(config)
    workflow = StudioWorkflow(
        RenderService(config),
        CreditService(InMemoryAccountStore(), uid="debug", default_credits=100),
        BatchHistory(config.max_history),
    )

    # 2. Test input (replace as needed)
    input_path = Path(sys.argv[1] if len(sys.argv) > 1 else "tests/assets/debug_input.png")
    task = sys.argv[2] if len(sys.argv) > 2 else "perspective"
    images, errors = read_uploads([input_path])
    if errors:
        raise SystemExit("; ".join(errors))

    workflow.state.active_task = parse_task_type(task)

    # 3. Run one generation against the API
    batch = workflow.run_generation(images, "Warm evening light, wet pavement", image_size="1K")
    path = StorageService(config.output_dir).save_image(batch.results[0].output_image, prefix="debug")
    print("Saved:", path.resolve())


if __name__ == "__main__":
    main()

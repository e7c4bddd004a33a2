from __future__ import annotations

import argparse
import logging
from pathlib import Path

from .config import get_settings
from .errors import PipelineError
from .pipeline import ResumePipeline, run_pipeline


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="resume-recon",
        description="Reconcile a resume PDF against a job description (matched / missing / extra).",
    )
    p.add_argument("--resume", required=True, type=Path, help="Resume PDF file.")
    p.add_argument("--job-description", required=True, type=Path, help="Job description text file.")
    p.add_argument("--out", type=Path, default=None, help="Write the report JSON here instead of stdout.")
    p.add_argument("--scale", type=float, default=None, help="Render scale (default from settings).")
    p.add_argument(
        "--backend",
        choices=["llm_judge", "embedding"],
        default=None,
        help="Similarity oracle (default from settings).",
    )
    p.add_argument("--threshold", type=float, default=None, help="Match threshold in [0, 1].")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    return p


def main(argv: list[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    overrides = {}
    if args.scale is not None:
        overrides["render_scale"] = args.scale
    if args.backend is not None:
        overrides["similarity_backend"] = args.backend
    if args.threshold is not None:
        overrides["match_threshold"] = args.threshold
    settings = get_settings().model_copy(update=overrides)

    logger = logging.getLogger("resume_recon")
    try:
        document_bytes = args.resume.read_bytes()
        job_description = args.job_description.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Cannot read input: {e}")
        return 2
    if not job_description.strip():
        logger.error(f"Job description file is empty: {args.job_description}")
        return 2

    try:
        report = run_pipeline(document_bytes, job_description, ResumePipeline.from_settings(settings))
    except PipelineError as e:
        logger.error(f"Run failed: {e.to_dict()}")
        return 2

    payload = report.model_dump_json(indent=2) + "\n"
    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(payload, encoding="utf-8")
    else:
        print(payload, end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

#!/usr/bin/env python3
"""CLI entry point for batch mood board generation."""

import asyncio
import dataclasses
import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click
import httpx

from config import Settings, paths
from generation_models import GeneratedImage, ImageKind
from pipeline import MoodBoardPipeline
from quality_profiles import parse_sequence
from service_selector import parse_backend_ids
from utils import InvalidImageError, hash_prompt, save_image, verify_image_bytes

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = 60.0


def read_prompts_file(path: Path) -> list[str]:
    """Read one prompt per line, skipping blanks and # comments."""
    prompts = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            prompts.append(line)
    return prompts


def apply_overrides(
    settings: Settings,
    priority: str | None = None,
    sequence: str | None = None,
    delay: float | None = None,
) -> Settings:
    """
    Return settings with CLI overrides applied.

    Raises:
        ValueError: If the priority or sequence names something unknown
    """
    if priority:
        order = parse_backend_ids(priority)
        if not order:
            raise ValueError("--priority must name at least one backend")
        settings = dataclasses.replace(settings, service_priority=tuple(b.value for b in order))
    progressive = settings.progressive
    if sequence:
        progressive = dataclasses.replace(progressive, sequence=tuple(q.value for q in parse_sequence(sequence)))
    if delay is not None:
        progressive = dataclasses.replace(progressive, delay_between_generations=delay)
    # Batch runs have no board to show an enhanced variant on
    progressive = dataclasses.replace(progressive, background_enhancement=False)
    return dataclasses.replace(settings, progressive=progressive)


async def image_bytes(image: GeneratedImage, client: httpx.AsyncClient) -> bytes:
    """
    Get the raw bytes behind a generated image.

    Raises:
        httpx.HTTPError: If a URL image cannot be downloaded
        InvalidImageError: If the bytes are not an image
    """
    handle = image.handle
    if handle.kind == ImageKind.INLINE:
        data = handle.data
    else:
        response = await client.get(handle.url)
        response.raise_for_status()
        data = response.content
    verify_image_bytes(data)
    return data


async def generate_board(
    pipeline: MoodBoardPipeline,
    prompts: list[str],
    output: Path,
    enhance: bool = False,
) -> list[dict]:
    """
    Run the full progressive sequence for each prompt and save every image.

    Returns:
        One metadata dict per prompt
    """
    runs = []
    async with httpx.AsyncClient(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True) as client:
        for prompt in prompts:
            text = prompt
            if enhance:
                text = await pipeline.enhancer.enhance(prompt) or prompt
                if text != prompt:
                    click.echo(f"Enhanced: {text}")

            click.echo(f"Generating: {text}")
            run = {"prompt": prompt, "generated_prompt": text, "images": []}

            async for image in pipeline.orchestrator.events(text):
                try:
                    data = await image_bytes(image, client)
                except (httpx.HTTPError, InvalidImageError) as e:
                    logger.warning(f"Could not fetch {image.quality.value} image for {prompt!r}: {e}")
                    continue

                dest = output / f"{hash_prompt(prompt)}_{image.quality.value.lower()}.png"
                saved = save_image(data, dest, text={
                    "prompt": text,
                    "quality": image.quality.value,
                    "backend": image.backend.value if image.backend else None,
                })
                run["images"].append({
                    "file": saved.name,
                    "slot_id": image.slot_id,
                    "quality": image.quality.value,
                    "is_upgrade": image.is_upgrade,
                    "backend": image.backend.value if image.backend else None,
                    "source": "url" if image.handle.kind == ImageKind.URL else "inline",
                })
                click.echo(f"  {image.quality.value}: {saved}")

            if not run["images"]:
                click.echo(f"  No image generated for: {prompt}", err=True)
            runs.append(run)
    return runs


async def run_batch(settings: Settings, prompts: list[str], output: Path, enhance: bool) -> list[dict]:
    pipeline = MoodBoardPipeline.from_settings(settings)
    try:
        return await generate_board(pipeline, prompts, output, enhance=enhance)
    finally:
        await pipeline.aclose()


@click.command()
@click.option(
    '-p', '--prompt', 'prompts',
    multiple=True,
    help='Prompt to render (repeatable)'
)
@click.option(
    '--prompts-file',
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='File with one prompt per line'
)
@click.option(
    '-o', '--output',
    type=click.Path(path_type=Path),
    help='Output directory (default: generated/boards/{timestamp}/)'
)
@click.option(
    '--priority',
    default=None,
    help='Comma-separated backend order, e.g. LOCAL_SD,REPLICATE'
)
@click.option(
    '--sequence',
    default=None,
    help='Comma-separated quality sequence, e.g. LOW,HIGH'
)
@click.option(
    '--delay',
    type=float,
    default=None,
    help='Seconds between quality levels'
)
@click.option(
    '--enhance',
    is_flag=True,
    help='Rewrite each prompt with the local LLM before generating'
)
@click.option(
    '-v', '--verbose',
    is_flag=True,
    help='Debug logging'
)
@click.option(
    '--serve',
    is_flag=True,
    help='Start the live board web server instead of a batch run'
)
@click.option(
    '--host',
    default='127.0.0.1',
    help='Web server host (with --serve)'
)
@click.option(
    '--port',
    type=int,
    default=8000,
    help='Web server port (with --serve)'
)
def main(
    prompts: tuple[str, ...],
    prompts_file: Path | None,
    output: Path | None,
    priority: str | None,
    sequence: str | None,
    delay: float | None,
    enhance: bool,
    verbose: bool,
    serve: bool,
    host: str,
    port: int,
):
    """
    Render prompts progressively through the configured image backends.

    Example:
        moodboard -p "a lighthouse at dusk" -p "autumn forest path"
        moodboard --prompts-file prompts.txt --priority LOCAL_SD --sequence LOW,HIGH
        moodboard --serve --port 8000
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if serve:
        import uvicorn
        from server.app import app

        click.echo(f"Starting web UI server at http://{host}:{port}")
        uvicorn.run(app, host=host, port=port)
        return

    all_prompts = [p.strip() for p in prompts if p.strip()]
    if prompts_file:
        all_prompts.extend(read_prompts_file(prompts_file))
    if not all_prompts:
        click.echo("Error: --prompt or --prompts-file is required", err=True)
        sys.exit(1)

    try:
        settings = apply_overrides(Settings.from_env(), priority=priority, sequence=sequence, delay=delay)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if output is None:
        output = paths.boards_dir / timestamp
    output.mkdir(parents=True, exist_ok=True)

    runs = asyncio.run(run_batch(settings, all_prompts, output, enhance))

    metadata = {
        "created_at": datetime.now().isoformat(),
        "service_priority": list(settings.service_priority),
        "sequence": list(settings.progressive.sequence) if settings.progressive.enabled else ["MEDIUM"],
        "runs": runs,
    }
    metadata_file = output / "board_metadata.json"
    metadata_file.write_text(json.dumps(metadata, indent=2))

    image_count = sum(len(run["images"]) for run in runs)
    click.echo(f"Saved {image_count} images for {len(runs)} prompts in: {output}")

    if image_count == 0:
        click.echo("Error: no image was generated", err=True)
        sys.exit(1)


if __name__ == '__main__':
    main()

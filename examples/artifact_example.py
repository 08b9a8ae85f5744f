"""Example usage of the async OCI artifact client."""

import asyncio
import logging
import sys
import tempfile
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, "src")

from oci_artifact_client import (
    ArtifactClient,
    ArtifactError,
    Metadata,
    PushOptions,
    pull_artifact,
    push_artifact,
)

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

REGISTRY = "localhost:15000"


def create_sample_tree(root: Path) -> Path:
    """Write a small manifests directory to package."""
    files = {
        "deploy/deployment.yaml": "apiVersion: apps/v1\nkind: Deployment\n",
        "deploy/service.yaml": "apiVersion: v1\nkind: Service\n",
        "README.md": "# manifests\n",
        ".git/HEAD": "ref: refs/heads/main\n",
    }
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


async def main():
    """Push a directory and pull it back."""
    url = f"{REGISTRY}/examples/manifests:v1"

    with tempfile.TemporaryDirectory() as tmp:
        source = create_sample_tree(Path(tmp) / "source")
        try:
            logger.info("Pushing %s to %s...", source, url)
            digest = await push_artifact(
                url,
                source,
                metadata=Metadata(source="https://github.com/example/manifests", revision="main"),
                ignore_rules=[".git/", "*.md"],
            )
            logger.info("✓ Pushed %s", digest)

            dest = Path(tmp) / "pulled"
            metadata = await pull_artifact(url, dest)
            logger.info("✓ Pulled %s (created %s)", metadata.digest, metadata.created)
            for path in sorted(dest.rglob("*")):
                logger.info("  %s", path.relative_to(dest))

        except ArtifactError as e:
            logger.error("Artifact error: %s", e)


async def concurrent_operations():
    """Push several static artifacts concurrently with one client."""
    with tempfile.TemporaryDirectory() as tmp:
        sources = []
        for name in ("alpha", "beta", "gamma"):
            path = Path(tmp) / f"{name}.yaml"
            path.write_text(f"name: {name}\n")
            sources.append(path)

        try:
            logger.info("Running concurrent pushes...")
            async with ArtifactClient() as client:
                tasks = [
                    client.push(
                        f"{REGISTRY}/examples/{path.stem}:v1",
                        path,
                        PushOptions(layer_type="static"),
                    )
                    for path in sources
                ]
                digests = await asyncio.gather(*tasks)

            for path, digest in zip(sources, digests, strict=False):
                logger.info("%s -> %s", path.name, digest)

        except ArtifactError as e:
            logger.error("Artifact error: %s", e)


if __name__ == "__main__":
    print("=== Push and Pull ===")
    asyncio.run(main())

    print("\n=== Concurrent Pushes ===")
    asyncio.run(concurrent_operations())

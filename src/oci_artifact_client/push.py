"""Async functional style build and push operations."""

from pathlib import Path

from .client import ArtifactClient
from .core.types import RegistryConfig
from .models import Metadata, PushOptions
from .tar.models import LayerType


async def build_artifact(
    artifact_path: Path | str,
    source_path: Path | str,
    ignore_rules: list[str] | None = None,
) -> None:
    """파일 또는 디렉토리를 gzip 압축 tar 아카이브로 빌드합니다.

    Args:
        artifact_path: 생성할 아카이브 경로 (예: "./dist/manifests.tgz")
        source_path: 패키징할 파일 또는 디렉토리 경로
            - 디렉토리: 재귀적으로 순회하며 ignore 규칙을 적용
            - 단일 파일: ignore 규칙과 무관하게 파일 하나만 포함
        ignore_rules: gitignore 형식의 패턴 목록 (예: ["*.md", "/tests", "!/tests/fixtures"])

    Raises:
        SourceNotFoundError: source_path가 존재하지 않는 경우
        ArtifactIOError: 아카이브를 쓸 수 없는 경우

    Examples:
        # 디렉토리를 빌드 (.git 디렉토리 제외)
        await build_artifact("manifests.tgz", "./deploy", [".git/"])
    """
    async with ArtifactClient() as client:
        await client.build(artifact_path, source_path, ignore_rules)


async def push_artifact(
    url: str,
    source_path: Path | str,
    layer_type: LayerType | str | None = None,
    metadata: Metadata | None = None,
    ignore_rules: list[str] | None = None,
    timeout: int = 300,
) -> str:
    """파일 또는 디렉토리를 OCI 아티팩트로 레지스트리에 비동기로 푸시합니다.

    디렉토리는 tarball 레이어로 패키징되며, layer_type="static"을 지정하면
    파일을 변환 없이 그대로 업로드합니다.

    Args:
        url: 아티팩트 참조 (예: "localhost:5000/app/manifests:v1.0.0")
        source_path: 푸시할 파일 또는 디렉토리 경로
        layer_type: 레이어 유형 ("tarball" 또는 "static", 기본값: tarball)
        metadata: 매니페스트 어노테이션으로 저장할 메타데이터 (created, source, revision)
        ignore_rules: 디렉토리 빌드 시 적용할 gitignore 형식의 패턴 목록
        timeout: 요청 타임아웃 (초, 기본값: 300초)

    Returns:
        str: 푸시된 매니페스트의 digest 참조 (예: "localhost:5000/app/manifests@sha256:abc123...")

    Raises:
        InvalidReferenceError: 참조 형식이 잘못된 경우
        SourceNotFoundError: source_path가 존재하지 않는 경우
        RegistryError: 푸시 작업 실패 시

    Examples:
        # 디렉토리를 tarball 레이어로 푸시
        digest = await push_artifact(
            "localhost:5000/app/manifests:v1",
            "./deploy",
            metadata=Metadata(source="https://github.com/org/app", revision="main@sha1:abc"),
        )

        # 단일 파일을 static 레이어로 푸시
        await push_artifact("localhost:5000/app/config:v1", "config.yaml", layer_type="static")
    """
    options = PushOptions(
        layer_type=layer_type,
        metadata=metadata or Metadata(),
        ignore_rules=list(ignore_rules or []),
    )
    async with ArtifactClient(config=RegistryConfig(timeout=timeout)) as client:
        return await client.push(url, source_path, options)


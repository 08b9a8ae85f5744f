"""Async functional style pull operations."""

from pathlib import Path

from .client import ArtifactClient
from .core.types import RegistryConfig
from .models import Metadata, PullOptions
from .tar.models import UNBOUNDED, LayerType


async def pull_artifact(
    url: str,
    dest_path: Path | str,
    layer_type: LayerType | str | None = None,
    max_untar_size: int = UNBOUNDED,
    skip_symlinks: bool = True,
    timeout: int = 300,
) -> Metadata:
    """레지스트리에서 OCI 아티팩트를 내려받아 첫 번째 레이어를 추출합니다.

    layer_type을 지정하지 않으면 레이어 내용의 gzip 헤더를 확인하여
    tarball(디렉토리로 추출) 또는 static(파일로 복사)을 자동으로 결정합니다.

    Args:
        url: 아티팩트 참조 (예: "localhost:5000/app/manifests:v1.0.0")
        dest_path: 추출 대상 경로 (tarball은 디렉토리, static은 파일)
        layer_type: 레이어 유형 ("tarball" 또는 "static", 기본값: 자동 감지)
        max_untar_size: 압축 해제 최대 바이트 수 (기본값: UNBOUNDED, 제한 없음)
        skip_symlinks: 심볼릭 링크 엔트리를 건너뛸지 여부 (기본값: True)
        timeout: 요청 타임아웃 (초, 기본값: 300초)

    Returns:
        Metadata: 매니페스트 어노테이션에서 읽은 메타데이터 (url, digest 포함)

    Raises:
        InvalidReferenceError: 참조 형식이 잘못된 경우
        NoLayersError: 매니페스트에 레이어가 없는 경우
        SizeLimitExceededError: 압축 해제 크기가 max_untar_size를 초과한 경우
        RegistryError: 다운로드 실패 시

    Examples:
        # 아티팩트를 디렉토리로 추출
        meta = await pull_artifact("localhost:5000/app/manifests:v1", "./out")
        print(f"digest: {meta.digest}, source: {meta.source}")

        # 압축 해제 크기를 100MB로 제한
        await pull_artifact("localhost:5000/app/manifests:v1", "./out", max_untar_size=100 << 20)
    """
    options = PullOptions(
        layer_type=layer_type,
        max_untar_size=max_untar_size,
        skip_symlinks=skip_symlinks,
    )
    async with ArtifactClient(config=RegistryConfig(timeout=timeout)) as client:
        return await client.pull(url, dest_path, options)

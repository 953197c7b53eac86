# src/canopyscan/pipeline.py

"""
This module runs the canopy analysis end to end:

    load -> region filter -> pit-free CHM -> treetops -> tallest trees -> clusters -> export

Each stage fully materializes its output before the next one starts. Errors are
not caught between stages; the run aborts on the first one.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import pandas as pd

from canopyscan.config import PipelineConfig
from canopyscan.exceptions import InputError, OutputError
from canopyscan.lidar import (
    PointCloud,
    TreeTop,
    ClusteredTree,
    HeightSummary,
    clip_to_aoi,
    generate_chm,
    detect_treetops,
    select_tallest,
    cluster_trees,
    summarize_heights,
    height_histogram,
    cluster_summary
)
from canopyscan.raster import Raster, save
from canopyscan.vector import AreaOfInterest, save_vector, trees_to_vector, trees_to_geographic

log = logging.getLogger(__name__)

__all__ = [
    "PipelineResult",
    "run_pipeline",
    "write_outputs"
]

@dataclass(frozen=True)
class PipelineResult:
    """
    Everything one run produces. Consumers (maps, charts, reports) only read it.

    Attributes:
        aoi (AreaOfInterest): The area of interest, in the point cloud CRS.
        clipped (PointCloud): Points left by the region filter.
        chm (Raster): Pit-free canopy height model.
        treetops (List[TreeTop]): All detected tops.
        threshold (float): Height percentile computed over `treetops`.
        tall_trees (List[ClusteredTree]): Tops above the threshold, with cluster labels.
        summary (HeightSummary): Statistics over all detected tops.
        tall_summary (HeightSummary): Statistics over the tall subset.
    """
    aoi: AreaOfInterest
    clipped: PointCloud
    chm: Raster
    treetops: List[TreeTop]
    threshold: float
    tall_trees: List[ClusteredTree]
    summary: HeightSummary
    tall_summary: HeightSummary

    @property
    def crs(self):
        return self.clipped.crs

def run_pipeline(config: PipelineConfig, cloud: Optional[PointCloud] = None) -> PipelineResult:
    """
    Runs every stage once over a single point cloud.

    Args:
        config (PipelineConfig): Run parameters. Validated before anything else happens.
        cloud (Optional[PointCloud]): Already loaded cloud. When None, `config.input_path` is read.

    Returns:
        PipelineResult

    Raises:
        ParameterError: Invalid configuration (before any stage runs).
        InputError: Missing or unreadable input.
        GeometryError: Malformed AOI or irreconcilable CRSs.
        InsufficientTreesError: Fewer than two treetops reached the percentile stage.
    """
    config.validate()

    if cloud is None:
        if not config.input_path:
            raise InputError("No point cloud given and no input_path configured")
        cloud = PointCloud.from_file(config.input_path, crs=config.crs)

    aoi = config.region.build_aoi()
    if cloud.crs is not None and aoi.crs is not None:
        aoi = aoi.to_crs(cloud.crs)
    clipped = clip_to_aoi(cloud, aoi, config.region.z_min, config.region.z_max)

    chm = generate_chm(clipped, config.canopy)
    treetops = detect_treetops(chm, config.detection)
    threshold, tallest = select_tallest(treetops, config.percentile)
    tall_trees = cluster_trees(tallest, config.cluster)

    summary = summarize_heights(treetops, threshold)
    tall_summary = summarize_heights(tallest, threshold)
    log.info(
        f"Run complete: {summary.count} treetops (mean {summary.mean:.2f}), "
        f"{tall_summary.count} tall trees (mean {tall_summary.mean:.2f})"
    )

    return PipelineResult(
        aoi=aoi,
        clipped=clipped,
        chm=chm,
        treetops=treetops,
        threshold=threshold,
        tall_trees=tall_trees,
        summary=summary,
        tall_summary=tall_summary
    )

def write_outputs(
    result: PipelineResult,
    output_dir: Union[str, Path],
    geographic_crs: Optional[str] = "EPSG:4326"
    ) -> Dict[str, Path]:
    """
    Persists a run's products for downstream renderers.

    Files written:
        chm.tif               canopy height model (GeoTIFF)
        treetops.gpkg         all treetops, projected CRS
        tall_trees.gpkg       tall trees with cluster labels, reprojected to `geographic_crs`
                              (projected CRS when None or when the run has no CRS)
        summary.csv           height statistics of all and tall trees
        height_histogram.csv  1-unit height distribution of all treetops
        clusters.csv          per-cluster size, mean height and centroid

    Returns:
        Dict[str, Path]: Written files by product name.

    Raises:
        OutputError: If the output directory cannot be created or a raster cannot be written.
    """
    output_dir = Path(output_dir)
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputError(f"Cannot create output directory {output_dir}: {e}") from e
    written = {}

    written["chm"] = save(result.chm, output_dir / "chm.tif")

    if result.treetops:
        written["treetops"] = save_vector(
            trees_to_vector(result.treetops, result.crs), output_dir / "treetops.gpkg", driver="GPKG"
        )

    if result.tall_trees:
        if geographic_crs and result.crs is not None:
            tall = trees_to_geographic(result.tall_trees, result.crs, geographic_crs)
        else:
            tall = trees_to_vector(result.tall_trees, result.crs)
        written["tall_trees"] = save_vector(tall, output_dir / "tall_trees.gpkg", driver="GPKG")

    summary = pd.DataFrame(
        [result.summary.to_dict(), result.tall_summary.to_dict()],
        index=pd.Index(["all", "tall"], name="subset")
    )
    written["summary"] = output_dir / "summary.csv"
    summary.to_csv(written["summary"])

    written["height_histogram"] = output_dir / "height_histogram.csv"
    height_histogram(result.treetops).to_csv(written["height_histogram"], index=False)

    written["clusters"] = output_dir / "clusters.csv"
    cluster_summary(result.tall_trees).to_csv(written["clusters"], index=False)

    log.info(f"Wrote {len(written)} products to {output_dir}")
    return written

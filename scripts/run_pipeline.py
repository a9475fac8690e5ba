"""
Run the full pipeline
=====================
Builds an ecosystem graph from seed companies and/or a research topic and
writes it to ``output/graph_<topic>.json``.

Usage:
    python scripts/run_pipeline.py "AI GPU Server Supply Chain"               # seeds inferred
    python scripts/run_pipeline.py --seeds NVIDIA,TSMC                         # topic inferred
    python scripts/run_pipeline.py "AI GPU Servers" --seeds NVIDIA,TSMC       # both given
    python scripts/run_pipeline.py "AI GPU Servers" --seeds NVIDIA --neo4j    # also export to Neo4j

Requires LLM API credentials in .env (OPENAI_API_KEY, OPENAI_API_BASE_URL,
MODEL_NAME).  ``--neo4j`` additionally needs a running Neo4j instance.
"""

import sys
import os
import logging

# Add project root to path
script_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(script_dir)
sys.path.insert(0, project_root)

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s - %(name)s - %(message)s",
)
logging.getLogger("neo4j").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

from ecograph.core.errors import EcographError
from ecograph.graphrag.graph_export import GraphExporter, Neo4jGraphWriter
from ecograph.pipeline import Pipeline


def print_status(stage: str, message: str, progress: int) -> None:
    print(f"  [{progress:3d}%] {stage:16s} {message}")


def main() -> None:
    # Parse arguments
    seeds: list[str] = []
    topic_words: list[str] = []
    to_neo4j = False
    args = sys.argv[1:]
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == "--neo4j":
            to_neo4j = True
        elif arg == "--seeds" and i + 1 < len(args):
            seeds = [s.strip() for s in args[i + 1].split(",") if s.strip()]
            i += 1
        else:
            topic_words.append(arg)
        i += 1
    topic = " ".join(topic_words)

    if not seeds and not topic:
        print(__doc__)
        sys.exit(1)

    print(f"\n{'='*60}")
    print("  ECOSYSTEM GRAPH PIPELINE")
    print(f"  Topic: {topic or '(infer from seeds)'}")
    print(f"  Seeds: {', '.join(seeds) if seeds else '(infer from topic)'}")
    print(f"{'='*60}\n")

    pipeline = Pipeline(
        on_status=print_status,
        on_topic_inferred=lambda t: print(f"  Inferred topic: {t}"),
        on_seeds_inferred=lambda s: print(f"  Inferred seeds: {', '.join(s)}"),
    )

    try:
        graph = pipeline.run(seeds=seeds, topic=topic)
    except EcographError as exc:
        print(f"\nPipeline failed: {exc}\n")
        sys.exit(1)

    output_path = GraphExporter().write_json(graph)

    # Print results
    print(f"\n{'='*60}")
    print("PIPELINE RESULTS")
    print(f"{'='*60}")
    print(f"  Topic:        {graph.topic}")
    print(f"  Nodes:        {len(graph.nodes)}")
    print(f"  Links:        {len(graph.links)}")
    print(f"  Sources:      {len(graph.sources)}")
    if graph.completeness:
        c = graph.completeness
        print(f"  Completeness: {c.score:.3f}")
        print(f"    seed coverage  {c.seed_coverage:.2f}")
        print(f"    role diversity {c.role_diversity:.2f}")
        print(f"    depth reach    {c.depth_reach:.2f}")
        print(f"    source density {c.source_density:.2f}")
        print(f"    novelty        {c.novelty:.2f}")
        if c.missing_roles:
            print(f"  Missing roles:     {', '.join(c.missing_roles)}")
        if c.recommended_seeds:
            print(f"  Recommended seeds: {', '.join(c.recommended_seeds)}")
    if pipeline.expansion:
        for r in pipeline.expansion.rounds:
            print(f"  Round {r.index}: {len(r.seeds)} seed(s), "
                  f"+{r.stats.entities_added} entities, +{r.stats.links_added} links, "
                  f"score {r.score:.3f}")
    print(f"  Output:       {output_path}")

    if to_neo4j:
        with Neo4jGraphWriter() as writer:
            summary = writer.write(graph)
        print(f"  Neo4j:        {summary['companies_written']} companies, "
              f"{summary['relationships_written']} relationships")

    print(f"{'='*60}\n")


if __name__ == "__main__":
    main()

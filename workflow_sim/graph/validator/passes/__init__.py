from workflow_sim.graph.validator.passes.cycle_pass import detect_cycles, run_cycle_pass
from workflow_sim.graph.validator.passes.dead_end_pass import run_dead_end_pass
from workflow_sim.graph.validator.passes.field_ref_pass import run_field_ref_pass
from workflow_sim.graph.validator.passes.reachability_pass import bfs_reachable, run_reachability_pass
from workflow_sim.graph.validator.passes.start_end_pass import run_start_end_pass

__all__ = [
    "bfs_reachable",
    "detect_cycles",
    "run_cycle_pass",
    "run_dead_end_pass",
    "run_field_ref_pass",
    "run_reachability_pass",
    "run_start_end_pass",
]

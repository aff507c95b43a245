from retireplan.api import (
    ProjectionRequest,
    SolveRequest,
    describe_result,
    project,
    run,
    simulate,
    solve,
)
from retireplan.engine.market_generator import HistoricalData, ReturnGenerator
from retireplan.engine.monte_carlo import MonteCarloSimulator, SimulationParams
from retireplan.engine.projection import ProjectionEngine
from retireplan.engine.solver import BreakEvenSolver, SolverTarget
from retireplan.errors import (
    ConfigurationError,
    ConvergenceError,
    DataError,
    InvariantViolation,
    RetirementPlanError,
)
from retireplan.models import (
    Assumptions,
    ExternalPension,
    GuardrailBands,
    Household,
    Participant,
    ParticipantScenario,
    RothConversion,
    Scenario,
)
from retireplan.results import CoreResult, ProjectionResult, SimulationResult, SolverResult
from retireplan.utils.frames import projection_frame, trials_frame

__version__ = "0.1.0"

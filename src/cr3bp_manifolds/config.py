# Numba
FASTMATH = False  # Global flag for Numba's fastmath option

# Integration
DEFAULT_METHOD = "DOP853"
DEFAULT_RTOL = 3e-14
DEFAULT_ATOL = 1e-14
STM_RTOL = 1e-12  # Variational (STM) propagation
STM_ATOL = 1e-12
MAX_STEPS = 100_000  # Accepted steps per integration call

# Dynamics
SINGULARITY_TOL = 1e-6  # Distance to a primary treated as a collision

# Eigenstructure
STABILITY_TOL = 1e-4  # |lambda| within 1 +/- tol is a center direction
EIGEN_TIE_TOL = 1e-10
IMAG_TOL = 1e-12

# Manifolds
DEFAULT_EPS = 1e-7
N_SAMPLES = 11  # Points along the orbit, both ends included
N_WORKERS = None  # None -> os.cpu_count()

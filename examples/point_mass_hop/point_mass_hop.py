import casadi as ca
import numpy as np

import dirconlab as dl
from dirconlab.program.bindings import EqualityConstraint


# ============================================================================
# Physical Parameters
# ============================================================================

mass = 1.5  # kg
g = 9.81  # m/s²
mu = 0.8  # Ground friction coefficient (normal force only for a point foot)

# Hop geometry
hop_distance = 1.2  # m
apex_height = 0.25  # m, minimum height at mid-flight


# ============================================================================
# Model: planar point mass with horizontal and vertical thrust
# ============================================================================

dynamics = dl.ManipulatorDynamics(
    num_positions=2,
    num_inputs=2,
    mass_matrix=lambda q: mass * ca.MX.eye(2),
    bias=lambda q, v: ca.vertcat(0, mass * g),
    actuation_matrix=np.eye(2),
)

# Foot on the ground: height z = 0, unilateral normal force
foot = dl.PointPositionData(dynamics, lambda q: q, active_directions=[1], name="foot")
foot.add_fixed_normal_friction_constraints([1.0], mu)

stance = dl.KinematicDataSet(dynamics, [foot])
flight = dl.KinematicDataSet(dynamics)


# ============================================================================
# Touch-down: perfectly plastic impact
# ============================================================================


class PlasticImpactLaw(dl.ModeTransitionLaw):
    """M (v_post - v_pre) = J^T Lambda with the landing foot's impulse Lambda."""

    impulse_dimension = foot.length

    def constraint(self, dims):
        x_pre = ca.MX.sym("x_pre", dims.num_states)
        v_post = ca.MX.sym("v_post", dims.num_velocities)
        impulse = ca.MX.sym("impulse", self.impulse_dimension)
        q_pre = x_pre[: dims.num_positions]
        v_pre = x_pre[dims.num_positions :]
        residual = ca.mtimes(dynamics.mass_matrix_function(q_pre), v_post - v_pre) - ca.mtimes(
            foot.jacobian(q_pre).T, impulse
        )
        function = ca.Function("plastic_impact", [x_pre, v_post, impulse], [residual])
        return EqualityConstraint(function, "plastic_impact")


# ============================================================================
# Transcription: stance -> flight -> stance
# ============================================================================

num_samples = [8, 10, 8]
dircon = dl.HybridDircon(
    [stance, flight, stance],
    num_samples,
    min_timesteps=[0.02, 0.02, 0.02],
    max_timesteps=[0.15, 0.15, 0.15],
    transition_laws=[dl.VelocityContinuityLaw(), PlasticImpactLaw()],
    name="point_mass_hop",
)

# Start and finish at rest on the ground; height and vertical speed are pinned by the contact
x0 = dircon.state_vars_by_mode(0, 0)
xf = dircon.state_vars_by_mode(2, num_samples[2] - 1)
dircon.add_bounding_box_constraint(0.0, 0.0, x0.sub(0, 1))
dircon.add_bounding_box_constraint(0.0, 0.0, x0.sub(2, 1))
dircon.add_bounding_box_constraint(hop_distance, hop_distance, xf.sub(0, 1))
dircon.add_bounding_box_constraint(0.0, 0.0, xf.sub(2, 1))

# Clear the apex in the middle of the flight
apex = dircon.state_vars_by_mode(1, num_samples[1] // 2)
dircon.add_bounding_box_constraint(apex_height, np.inf, apex.sub(1, 1))

# Thrust limits at every sample
dircon.add_bounding_box_constraint(-30.0, 30.0, dircon.builder.group("u"))

dircon.add_duration_bounds(0.8, 2.0)
dircon.add_running_cost(lambda x, u: ca.sumsqr(u))


# ============================================================================
# Initial Guess
# ============================================================================

duration_guess = 1.2
times = np.linspace(0.0, duration_guess, 5)
height = apex_height * np.sin(np.pi * times / duration_guess) ** 2
traj_x = dl.PiecewiseTrajectory.first_order_hold(
    times,
    np.vstack(
        [
            hop_distance * times / duration_guess,
            height,
            np.full(times.size, hop_distance / duration_guess),
            np.zeros(times.size),
        ]
    ),
)
traj_u = dl.PiecewiseTrajectory.first_order_hold(
    [0.0, duration_guess], [[0.0, 0.0], [mass * g, mass * g]]
)
dircon.set_initial_trajectory(traj_init_u=traj_u, traj_init_x=traj_x)

weight = dl.PiecewiseTrajectory.first_order_hold([0.0, duration_guess], [[mass * g, mass * g]])
for mode in (0, 2):
    dircon.set_initial_force_trajectory(mode, traj_init_l=weight, traj_init_lc=weight)


# ============================================================================
# Solve
# ============================================================================

result = dircon.solve({"ipopt.max_iter": 1000})
dircon.print_solution(result)


# ============================================================================
# Results
# ============================================================================

if result.success:
    print(f"Objective: {result.objective:.6f}")
    durations = dircon.mode_durations(result)
    phases = zip(("stance", "flight", "landing"), durations, strict=True)
    print("Mode durations: " + ", ".join(f"{name}={value:.3f}s" for name, value in phases))

    state_traj = dircon.reconstruct_state_trajectory(result)
    flight_start = durations[0]
    flight_times = np.linspace(flight_start, flight_start + durations[1], 21)
    heights = state_traj.sample(flight_times)[1]
    print(f"Maximum flight height: {heights.max():.3f} m")

    impulse = result.value(dircon.impulse_vars(2))
    print(f"Touch-down impulse: {impulse[0]:.4f} N⋅s")

    landing_force = dircon.reconstruct_force_trajectory(result, 2)
    touch_down_force = landing_force.value(landing_force.start_time)[0]
    print(f"Landing normal force at touch-down: {touch_down_force:.3f} N")

else:
    print(f"Failed: {result.message}")

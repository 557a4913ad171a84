from structid.models.ode import ODE

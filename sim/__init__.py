"""
sim — Simulation core
=====================

Modules
-------
world
    :class:`World` simulation context, tick loop, reset and shutdown.
network
    :class:`Waypoint`, :class:`WaypointIndex`, :class:`RouteTable` and the
    built-in route catalog.
scene
    :class:`SceneConfig`, :func:`default_scene` and the JSON loader.
vehicle
    :class:`VehicleAgent` route following, signal gating and conflict
    avoidance.
signals
    :class:`TrafficLight` transitions and the :class:`SignalRegistry`.
controller
    :class:`PhaseController` Q-learning decision loop.
census
    :class:`TrafficCensus` active / waiting counters.
spawner
    :class:`VehicleSpawner` and :class:`SpawnScheduler`.
scheduler
    :class:`TickDispatcher` and :class:`Timer` state machines.
spatial
    :class:`SpatialIndex` overlap queries.
traffic_policy
    :class:`SimulationPolicy` tunable constants.
physics
    Low-level 2-D geometry helpers.
sim_bridge
    :class:`SimBridge` background-thread runner.
api
    Optional FastAPI server.
"""

"""
agent — Signal policies and the learning pipeline
=================================================

Modules
-------
policies
    :class:`Policy` interface and the hold / fixed-cycle / queue-pressure /
    random / external baselines, plus :func:`make_policy`.
features
    :func:`observation_to_features` fixed-length numeric encoding of an
    :class:`~junction.controller.Observation`.
inference
    :func:`get_model` cached model loader and :class:`ModelPolicy`.
api
    :func:`create_app` FastAPI surface over a running world.

Sub-packages
------------
learn
    Data generation, training and evaluation scripts.
generated/
    Output directory created by the pipeline (CSV datasets, ``.pkl`` model,
    reports).
"""

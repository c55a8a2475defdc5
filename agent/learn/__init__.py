"""
agent.learn — dataset generation, training and evaluation
=========================================================

Typical pipeline::

    python -m agent.learn.generate_data   # roll out the pressure policy → CSV
    python -m agent.learn.train           # fit the Random Forest → .pkl
    python -m agent.learn.evaluate        # compare policies → text report
"""

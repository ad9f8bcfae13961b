from socdrc.storage.results_store import ResultsStore, get_results_store

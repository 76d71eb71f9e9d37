"""Record stores and collection stores for each supported backend."""

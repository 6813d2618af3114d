"""tutor_ui: Streamlit presentation layer for the tutor chat backend."""

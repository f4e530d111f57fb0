# Shared Streamlit widgets for the role views

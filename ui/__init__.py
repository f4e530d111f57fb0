# Streamlit role views

from django.urls import path
from .views import home_content_list_create, home_content_detail, home_content_bulk

urlpatterns = [
    path('home-content/', home_content_list_create, name='home-content-list-create'),
    path('home-content/bulk/', home_content_bulk, name='home-content-bulk'),
    path('home-content/<int:pk>/', home_content_detail, name='home-content-detail'),
]

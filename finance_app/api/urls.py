from django.urls import path
from . import views

urlpatterns = [
    # Owner endpoints
    path('finances', views.finance_collection, name='finance_collection'),
    path('finances/<uuid:finance_id>', views.finance_detail, name='finance_detail'),
    path('finances/<uuid:finance_id>/sign-contract',
         views.finance_sign_contract, name='finance_sign_contract'),

    # Admin lifecycle endpoints
    path('finances/<uuid:finance_id>/status',
         views.finance_update_status, name='finance_update_status'),
    path('finances/<uuid:finance_id>/restore',
         views.finance_restore, name='finance_restore'),
]
